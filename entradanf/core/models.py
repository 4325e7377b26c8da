"""
================================================================================
MÓDULO: models.py - Estruturas de dados da entrada de mercadorias
================================================================================

Tipos compartilhados entre o parser de NF-e, o motor de rateio, a sessão de
entrada e o repositório de estoque.

Todos os valores monetários e quantidades são Decimal. Nada de float no
estado interno: o float só aparece na borda (entrada do usuário, Excel).

    NotaFiscalXML   -> resultado do parsing de um XML (imutável)
    ItemNota        -> item lido do XML
    ItemEntrada     -> item da sessão de entrada (catálogo ou produto novo)
    OutroCusto      -> custo adicional nomeado (descarga, seguro, ...)
    ItemRateado     -> item + custo unitário rateado (derivado)
    ResultadoRateio -> totais e itens rateados
    PayloadNotaEntrada -> dados entregues ao repositório ao confirmar
================================================================================
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Tuple

from .exceptions import ValorInvalidoError


ZERO = Decimal("0")


def para_decimal(valor: Any, default: Optional[Decimal] = None) -> Decimal:
    """
    Converte int, str, float ou Decimal para Decimal.

    Floats passam por str() para não carregar o erro binário
    (0.1 vira Decimal("0.1"), e não 0.1000000000000000055...).

    Raises:
        ValorInvalidoError: Valor não numérico e sem default.
    """
    if valor is None or valor == "":
        if default is not None:
            return default
        raise ValorInvalidoError("Valor numérico ausente.")

    if isinstance(valor, Decimal):
        resultado = valor
    elif isinstance(valor, bool):
        raise ValorInvalidoError(f"Valor numérico inválido: {valor!r}")
    elif isinstance(valor, int):
        resultado = Decimal(valor)
    else:
        try:
            resultado = Decimal(str(valor).strip())
        except InvalidOperation:
            if default is not None:
                return default
            raise ValorInvalidoError(f"Valor numérico inválido: {valor!r}")

    if not resultado.is_finite():
        if default is not None:
            return default
        raise ValorInvalidoError(f"Valor numérico inválido: {valor!r}")
    return resultado


# =============================================================================
# DADOS DO XML
# =============================================================================

@dataclass(frozen=True)
class ItemNota:
    """Item (<det>) extraído de uma NF-e."""

    nome: str
    quantidade: Decimal
    custo_unitario: Decimal
    ncm: Optional[str] = None
    sku: Optional[str] = None

    @property
    def subtotal(self) -> Decimal:
        return self.quantidade * self.custo_unitario


@dataclass(frozen=True)
class NotaFiscalXML:
    """
    Representação normalizada de uma NF-e.

    Campos ausentes no XML ficam como string vazia / None / zero.
    """

    numero_nota: str = ""
    chave_acesso: str = ""
    nome_fornecedor: str = ""
    documento_fornecedor: str = ""
    data_entrada: Optional[date] = None
    itens: Tuple[ItemNota, ...] = ()
    valor_frete: Decimal = ZERO
    total_impostos: Decimal = ZERO

    @property
    def subtotal(self) -> Decimal:
        """Soma de quantidade × custo unitário dos itens do XML."""
        return sum((item.subtotal for item in self.itens), ZERO)


# =============================================================================
# SESSÃO DE ENTRADA
# =============================================================================

@dataclass(frozen=True)
class ItemEntrada:
    """Item da nota de entrada em edição."""

    chave: str
    nome: str
    quantidade: Decimal
    custo_unitario: Decimal
    produto_id: Optional[str] = None
    novo_produto: bool = False
    sku: Optional[str] = None
    ncm: Optional[str] = None

    @property
    def subtotal(self) -> Decimal:
        return self.quantidade * self.custo_unitario


@dataclass(frozen=True)
class OutroCusto:
    id: str
    descricao: str
    valor: Decimal


# =============================================================================
# RATEIO
# =============================================================================

@dataclass(frozen=True)
class ItemRateado:
    """Item com o custo unitário após rateio de frete, impostos e outros custos."""

    item: Any
    proporcao: Decimal
    custo_rateado: Decimal

    @property
    def nome(self) -> str:
        return self.item.nome

    @property
    def quantidade(self) -> Decimal:
        return self.item.quantidade

    @property
    def custo_unitario(self) -> Decimal:
        return self.item.custo_unitario

    @property
    def subtotal(self) -> Decimal:
        return self.item.quantidade * self.item.custo_unitario

    @property
    def custo_total(self) -> Decimal:
        return self.custo_rateado * self.item.quantidade


@dataclass(frozen=True)
class ResultadoRateio:
    subtotal: Decimal = ZERO
    valor_frete: Decimal = ZERO
    outros_custos: Decimal = ZERO
    percentual_imposto: Decimal = ZERO
    valor_impostos: Decimal = ZERO
    custo_total: Decimal = ZERO
    itens: Tuple[ItemRateado, ...] = ()

    @property
    def custos_extras(self) -> Decimal:
        """Frete + outros custos + impostos: o que é distribuído entre os itens."""
        return self.valor_frete + self.outros_custos + self.valor_impostos

    @property
    def total_rateado(self) -> Decimal:
        return sum((item.custo_total for item in self.itens), ZERO)


# =============================================================================
# PAYLOAD DE GRAVAÇÃO
# =============================================================================

@dataclass(frozen=True)
class NovoProduto:
    nome: str
    sku: Optional[str] = None
    ncm: Optional[str] = None


@dataclass(frozen=True)
class ItemPayload:
    quantidade: Decimal
    custo_unitario_bruto: Decimal
    produto_id: Optional[str] = None
    novo_produto: Optional[NovoProduto] = None

    @property
    def custo_unitario(self) -> Decimal:
        return self.custo_unitario_bruto


@dataclass(frozen=True)
class PayloadNotaEntrada:
    """
    Dados entregues ao repositório ao confirmar a entrada.

    Atenção à unidade: percentual_imposto é uma fração (0.15 = 15%),
    enquanto a sessão trabalha de 0 a 100.
    """

    data_entrada: date
    valor_frete: Decimal
    percentual_imposto: Decimal
    outros_custos: Decimal
    itens: Tuple[ItemPayload, ...] = field(default_factory=tuple)
    numero_nota: Optional[str] = None
    chave_acesso: Optional[str] = None
    fornecedor_id: Optional[str] = None
    observacoes: Optional[str] = None
