"""
Pacote utils - Utilitários do Entrada NF.

Contém:
    - ReportGenerator: Relatórios Excel/CSV do rateio
    - formatting: Formatação de moeda e documentos no padrão brasileiro
"""

from .exporter import ReportGenerator

__all__ = ['ReportGenerator']
