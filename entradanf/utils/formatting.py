"""
Formatação brasileira de valores (borda de apresentação).

O estado interno é sempre Decimal; estas funções só convertem para texto na
hora de exibir, e de texto digitado pelo usuário de volta para Decimal.
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from entradanf.core.exceptions import ValorInvalidoError
from entradanf.core.models import para_decimal


CENTAVO = Decimal("0.01")


def _agrupar(valor: Decimal) -> str:
    # 1234567.8 -> "1.234.567,80"
    texto = f"{valor:,.2f}"
    return texto.replace(",", "_").replace(".", ",").replace("_", ".")


def formatar_moeda(valor: Any) -> str:
    """
    Formata um valor como Real brasileiro.

    Example:
        >>> formatar_moeda(Decimal("1234.5"))
        'R$ 1.234,50'
        >>> formatar_moeda(-1)
        '-R$ 1,00'
    """
    numero = para_decimal(valor, default=Decimal("0")).quantize(CENTAVO, rounding=ROUND_HALF_UP)
    sinal = "-" if numero < 0 else ""
    return f"{sinal}R$ {_agrupar(abs(numero))}"


def formatar_percentual(valor: Any) -> str:
    """15 -> '15,00%'."""
    numero = para_decimal(valor, default=Decimal("0")).quantize(CENTAVO, rounding=ROUND_HALF_UP)
    return f"{_agrupar(numero)}%"


def parse_valor_brl(texto: Any) -> Decimal:
    """
    Converte texto digitado (formato brasileiro ou com ponto) para Decimal.

    Aceita "1.234,56", "R$ 10,5", "10.50", "1234".
    Com vírgula, os pontos são separadores de milhar; sem vírgula, o ponto é
    o separador decimal.

    Raises:
        ValorInvalidoError: Texto vazio ou não numérico.
    """
    if isinstance(texto, (int, float, Decimal)) and not isinstance(texto, bool):
        return para_decimal(texto)

    limpo = re.sub(r"[R$\s]", "", str(texto or ""))
    if not limpo:
        raise ValorInvalidoError("Informe um valor.")

    if "," in limpo:
        limpo = limpo.replace(".", "").replace(",", ".")

    try:
        numero = Decimal(limpo)
    except InvalidOperation:
        raise ValorInvalidoError(f"Valor inválido: {texto!r}")

    if not numero.is_finite():
        raise ValorInvalidoError(f"Valor inválido: {texto!r}")
    return numero


def formatar_documento(documento: str) -> str:
    """
    Formata CNPJ (14 dígitos) ou CPF (11 dígitos).

    Qualquer outra coisa volta como veio.

    Example:
        >>> formatar_documento("12345678000199")
        '12.345.678/0001-99'
    """
    doc = (documento or "").strip()
    if len(doc) == 14 and doc.isdigit():
        return f"{doc[:2]}.{doc[2:5]}.{doc[5:8]}/{doc[8:12]}-{doc[12:]}"
    if len(doc) == 11 and doc.isdigit():
        return f"{doc[:3]}.{doc[3:6]}.{doc[6:9]}-{doc[9:]}"
    return doc
