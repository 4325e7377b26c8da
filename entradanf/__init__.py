"""
Entrada NF - importação de NF-e de compra e rateio de custos de entrada.
"""

__version__ = "1.0.0"
