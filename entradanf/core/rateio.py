"""
================================================================================
MÓDULO: rateio.py - Rateio de frete, impostos e outros custos
================================================================================

Distribui os custos extras de uma nota de compra entre os itens, na proporção
do subtotal de cada item, e calcula o custo unitário final ("custo rateado")
que vai para o estoque.

FÓRMULAS:
---------
    subtotal      = Σ (quantidade × custo unitário)
    impostos      = (subtotal + frete + outros) × percentual / 100
    custo total   = subtotal + frete + outros + impostos

    para cada item:
        proporção     = subtotal_item / subtotal      (0 se subtotal = 0)
        parcela extra = (frete + outros + impostos) × proporção
        custo rateado = (subtotal_item + parcela extra) / quantidade
                        arredondado para 2 casas (meio para cima)

O imposto incide sobre o custo total de aquisição (mercadoria + frete +
outros custos), não apenas sobre o valor das mercadorias.

EXEMPLO:
--------
    2 × R$ 10,00  e  1 × R$ 30,00, frete R$ 5,00, imposto 10%

    subtotal = 50,00 | impostos = 55,00 × 10% = 5,50 | extras = 10,50
    item 1: 40% → 4,20 → (20,00 + 4,20) / 2 = 12,10
    item 2: 60% → 6,30 → (30,00 + 6,30) / 1 = 36,30

Subtotal zero não é erro: todas as proporções são zero e os custos extras
ficam sem rateio.

Todas as funções são puras: mesma entrada, mesma saída, sem estado.
================================================================================
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Optional, Sequence

from .models import ItemRateado, OutroCusto, ResultadoRateio, ZERO, para_decimal


logger = logging.getLogger(__name__)

CENTAVO = Decimal("0.01")
CEM = Decimal("100")


def arredondar_moeda(valor: Any) -> Decimal:
    """Arredonda para 2 casas, meio para cima (12,345 → 12,35)."""
    return para_decimal(valor).quantize(CENTAVO, rounding=ROUND_HALF_UP)


def _valor(valor: Any) -> Decimal:
    return ZERO if valor is None else para_decimal(valor)


def somar_outros_custos(outros: Iterable[OutroCusto]) -> Decimal:
    """Total da lista de outros custos (descarga, seguro, taxas...)."""
    return sum((para_decimal(custo.valor) for custo in outros), ZERO)


def calcular_rateio(
    itens: Sequence[Any],
    valor_frete: Any = ZERO,
    percentual_imposto: Any = ZERO,
    outros_custos: Any = ZERO,
) -> ResultadoRateio:
    """
    Calcula o custo rateado de cada item.

    Recalcula tudo do zero a cada chamada; não existe atualização parcial.

    Args:
        itens: Objetos com `quantidade` e `custo_unitario` (ItemEntrada,
            ItemNota...). A ordem é preservada no resultado.
        valor_frete: Frete da nota (≥ 0).
        percentual_imposto: Percentual de 0 a 100 (15 = 15%).
        outros_custos: Soma dos outros custos (≥ 0).

    Returns:
        ResultadoRateio: Totais da nota e um ItemRateado por item.

    Example:
        >>> resultado = calcular_rateio(itens, valor_frete=5, percentual_imposto=10)
        >>> [i.custo_rateado for i in resultado.itens]
        [Decimal('12.10'), Decimal('36.30')]
    """
    frete = _valor(valor_frete)
    percentual = _valor(percentual_imposto)
    outros = _valor(outros_custos)

    subtotais = [para_decimal(item.quantidade) * para_decimal(item.custo_unitario) for item in itens]
    subtotal = sum(subtotais, ZERO)

    valor_impostos = (subtotal + frete + outros) * (percentual / CEM)
    extras = frete + outros + valor_impostos

    rateados = []
    for item, subtotal_item in zip(itens, subtotais):
        quantidade = para_decimal(item.quantidade)
        proporcao = subtotal_item / subtotal if subtotal > 0 else ZERO
        parcela_extra = extras * proporcao

        if quantidade > 0:
            custo_rateado = arredondar_moeda((subtotal_item + parcela_extra) / quantidade)
        else:
            custo_rateado = ZERO.quantize(CENTAVO)

        rateados.append(ItemRateado(item=item, proporcao=proporcao, custo_rateado=custo_rateado))

    if itens and subtotal <= 0 and extras > 0:
        logger.debug("Subtotal zero: R$ %s em custos extras ficaram sem rateio", extras)

    return ResultadoRateio(
        subtotal=subtotal,
        valor_frete=frete,
        outros_custos=outros,
        percentual_imposto=percentual,
        valor_impostos=valor_impostos,
        custo_total=subtotal + frete + outros + valor_impostos,
        itens=tuple(rateados),
    )


def inferir_percentual_imposto(total_impostos: Any, subtotal: Any) -> Optional[Decimal]:
    """
    Percentual de imposto implícito numa NF-e importada.

    percentual = round(total_impostos / subtotal × 100, 2)

    Usado uma única vez, para preencher o campo de imposto ao importar o XML.
    Depois disso o usuário edita o percentual livremente.

    Returns:
        Decimal | None: None quando não há imposto ou subtotal positivo.

    Example:
        >>> inferir_percentual_imposto(Decimal("150"), Decimal("1000"))
        Decimal('15.00')
    """
    impostos = para_decimal(total_impostos, default=ZERO)
    base = para_decimal(subtotal, default=ZERO)

    if impostos <= 0 or base <= 0:
        return None
    return arredondar_moeda(impostos / base * CEM)
