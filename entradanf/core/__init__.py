"""
Pacote core - Módulos centrais do Entrada NF.

Contém:
    - NFeParser: Extração de dados de XMLs de NF-e
    - calcular_rateio: Rateio de frete, impostos e outros custos
    - SessaoEntrada: Nota de entrada em edição
    - EstoqueRepository: Estoque, notas de entrada e contas a pagar (JSON)
"""

from .parser import NFeParser
from .rateio import calcular_rateio, inferir_percentual_imposto
from .entrada import SessaoEntrada
from .estoque import EstoqueRepository

__all__ = ['NFeParser', 'calcular_rateio', 'inferir_percentual_imposto', 'SessaoEntrada', 'EstoqueRepository']
