"""
================================================================================
MÓDULO: entrada.py - Sessão de entrada de mercadorias
================================================================================

A SessaoEntrada é o "formulário" de uma nota de entrada: guarda o cabeçalho,
os itens e os custos enquanto o usuário edita, e monta o payload entregue ao
repositório quando ele confirma.

FLUXO:
------
    1. Nova sessão com o catálogo (produtos e fornecedores)
    2. Itens chegam de duas formas:
       - importar_xml(): lê a NF-e e preenche tudo de uma vez
       - adicionar_item_catalogo() / adicionar_item_novo(): entrada manual
    3. Usuário ajusta frete, percentual de imposto e outros custos
    4. `rateio` é recalculado do zero a cada acesso
    5. montar_payload() entrega tudo ao repositório (ou limpar() descarta)

VALIDAÇÃO:
----------
Nenhum item inválido chega ao rateio:
    - quantidade e custo unitário precisam ser > 0
    - produto do catálogo não pode ser adicionado duas vezes
    - produto novo precisa de nome

USO:
----
    sessao = SessaoEntrada(produtos=repo.listar_produtos(),
                           fornecedores=repo.listar_fornecedores())
    sessao.importar_xml(conteudo_xml)
    sessao.definir_frete("25.00")
    print(sessao.rateio.custo_total)
    repo.registrar_nota_entrada(sessao.montar_payload())
================================================================================
"""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Union

from .exceptions import (
    EntradaNFError,
    EntradaVaziaError,
    ImportacaoXMLError,
    ItemInvalidoError,
    ProdutoDuplicadoError,
    ValorInvalidoError,
)
from .models import (
    ItemEntrada,
    ItemPayload,
    NotaFiscalXML,
    NovoProduto,
    OutroCusto,
    PayloadNotaEntrada,
    ResultadoRateio,
    ZERO,
    para_decimal,
)
from .parser import NFeParser
from .rateio import CEM, arredondar_moeda, calcular_rateio, inferir_percentual_imposto, somar_outros_custos


logger = logging.getLogger(__name__)


def _nova_chave(prefixo: str) -> str:
    return f"{prefixo}-{uuid.uuid4().hex[:12]}"


class SessaoEntrada:
    """
    Estado de edição de uma nota de entrada.

    Attributes:
        produtos (list[dict]): Catálogo ({"id", "nome", "sku"}).
        fornecedores (list[dict]): Fornecedores cadastrados ({"id", "nome"}).
        itens (list[ItemEntrada]): Itens na ordem em que foram adicionados.
        outros_custos (list[OutroCusto]): Custos adicionais nomeados.
        percentual_imposto (Decimal): De 0 a 100.
    """

    def __init__(
        self,
        produtos: Optional[Sequence[Dict[str, Any]]] = None,
        fornecedores: Optional[Sequence[Dict[str, Any]]] = None,
        parser: Optional[NFeParser] = None,
    ):
        self.produtos = list(produtos or [])
        self.fornecedores = list(fornecedores or [])
        self.parser = parser or NFeParser()
        self.limpar()

    def limpar(self) -> None:
        """Descarta todo o conteúdo da sessão (cancelar / nova entrada)."""
        self.numero_nota = ""
        self.chave_acesso = ""
        self.fornecedor_id: Optional[str] = None
        self.data_entrada = date.today()
        self.observacoes = ""
        self.itens: List[ItemEntrada] = []
        self.valor_frete = ZERO
        self.percentual_imposto = ZERO
        self.outros_custos: List[OutroCusto] = []

    # =========================================================================
    # CÁLCULOS
    # =========================================================================

    @property
    def total_outros_custos(self) -> Decimal:
        return somar_outros_custos(self.outros_custos)

    @property
    def rateio(self) -> ResultadoRateio:
        """Rateio completo com o estado atual (sempre recalculado)."""
        return calcular_rateio(
            self.itens,
            valor_frete=self.valor_frete,
            percentual_imposto=self.percentual_imposto,
            outros_custos=self.total_outros_custos,
        )

    # =========================================================================
    # ITENS
    # =========================================================================

    def _validar_valores(self, quantidade: Any, custo_unitario: Any):
        try:
            qtd = para_decimal(quantidade)
            custo = para_decimal(custo_unitario)
        except ValorInvalidoError as e:
            raise ItemInvalidoError("Preencha quantidade e custo unitário.") from e

        if qtd <= 0 or custo <= 0:
            raise ItemInvalidoError("Preencha quantidade e custo unitário.")
        return qtd, custo

    def _buscar_produto(self, produto_id: str) -> Optional[Dict[str, Any]]:
        return next((p for p in self.produtos if p.get("id") == produto_id), None)

    def adicionar_item_catalogo(self, produto_id: str, quantidade: Any, custo_unitario: Any) -> ItemEntrada:
        """
        Adiciona um produto já cadastrado.

        Raises:
            ItemInvalidoError: Quantidade/custo ≤ 0, produto não informado ou
                inexistente no catálogo.
            ProdutoDuplicadoError: Produto já está na nota.
        """
        qtd, custo = self._validar_valores(quantidade, custo_unitario)

        if not produto_id:
            raise ItemInvalidoError("Selecione um produto do catálogo.")

        produto = self._buscar_produto(produto_id)
        if produto is None:
            raise ItemInvalidoError(f"Produto {produto_id} não encontrado no catálogo.")

        if any(item.produto_id == produto_id for item in self.itens):
            raise ProdutoDuplicadoError("Produto já adicionado.")

        item = ItemEntrada(
            chave=_nova_chave(produto_id),
            nome=produto["nome"],
            quantidade=qtd,
            custo_unitario=custo,
            produto_id=produto_id,
            novo_produto=False,
            sku=produto.get("sku") or None,
            ncm=produto.get("ncm") or None,
        )
        self.itens.append(item)
        return item

    def adicionar_item_novo(
        self,
        nome: str,
        quantidade: Any,
        custo_unitario: Any,
        sku: Optional[str] = None,
        ncm: Optional[str] = None,
    ) -> ItemEntrada:
        """Adiciona um produto que será cadastrado ao confirmar a entrada."""
        qtd, custo = self._validar_valores(quantidade, custo_unitario)

        nome = (nome or "").strip()
        if not nome:
            raise ItemInvalidoError("Informe o nome do produto.")

        item = ItemEntrada(
            chave=_nova_chave("new"),
            nome=nome,
            quantidade=qtd,
            custo_unitario=custo,
            novo_produto=True,
            sku=(sku or "").strip() or None,
            ncm=(ncm or "").strip() or None,
        )
        self.itens.append(item)
        return item

    def remover_item(self, chave: str) -> None:
        self.itens = [item for item in self.itens if item.chave != chave]

    # =========================================================================
    # CUSTOS
    # =========================================================================

    def definir_frete(self, valor: Any) -> None:
        frete = para_decimal(valor, default=ZERO)
        if frete < 0:
            raise ValorInvalidoError("O frete não pode ser negativo.")
        self.valor_frete = frete

    def definir_percentual_imposto(self, percentual: Any) -> None:
        pct = para_decimal(percentual, default=ZERO)
        if pct < 0 or pct > CEM:
            raise ValorInvalidoError("O percentual de imposto deve estar entre 0 e 100.")
        self.percentual_imposto = pct

    def adicionar_outro_custo(self, descricao: str = "", valor: Any = ZERO) -> OutroCusto:
        custo = OutroCusto(id=_nova_chave("oc"), descricao=(descricao or "").strip(), valor=self._valor_custo(valor))
        self.outros_custos.append(custo)
        return custo

    def atualizar_outro_custo(self, custo_id: str, descricao: Optional[str] = None, valor: Any = None) -> None:
        atualizados = []
        for custo in self.outros_custos:
            if custo.id == custo_id:
                custo = OutroCusto(
                    id=custo.id,
                    descricao=custo.descricao if descricao is None else descricao.strip(),
                    valor=custo.valor if valor is None else self._valor_custo(valor),
                )
            atualizados.append(custo)
        self.outros_custos = atualizados

    def remover_outro_custo(self, custo_id: str) -> None:
        self.outros_custos = [c for c in self.outros_custos if c.id != custo_id]

    @staticmethod
    def _valor_custo(valor: Any) -> Decimal:
        numero = para_decimal(valor, default=ZERO)
        if numero < 0:
            raise ValorInvalidoError("Custos adicionais não podem ser negativos.")
        return numero

    # =========================================================================
    # IMPORTAÇÃO DE XML
    # =========================================================================

    def _casar_fornecedor(self, nome_fornecedor: str) -> Optional[Dict[str, Any]]:
        """Fornecedor cujo nome contém (ou está contido) no nome da NF-e."""
        alvo = nome_fornecedor.lower()
        for fornecedor in self.fornecedores:
            nome = (fornecedor.get("nome") or "").lower()
            if nome and (alvo in nome or nome in alvo):
                return fornecedor
        return None

    def _casar_produto(self, nome: str, sku: Optional[str]) -> Optional[Dict[str, Any]]:
        """Produto do catálogo com o mesmo SKU ou exatamente o mesmo nome."""
        for produto in self.produtos:
            if sku and produto.get("sku") and produto["sku"] == sku:
                return produto
            if (produto.get("nome") or "").lower() == nome.lower():
                return produto
        return None

    def aplicar_nota_xml(self, nota: NotaFiscalXML) -> None:
        """
        Preenche a sessão com uma NF-e interpretada.

        - Número, chave, data e frete só sobrescrevem se vierem preenchidos
        - O percentual de imposto é inferido uma única vez (total de impostos
          ÷ subtotal do XML); depois fica livre para edição
        - Fornecedor não encontrado vai para as observações
        - Os itens substituem os atuais, casados com o catálogo por SKU ou nome

        Todos os valores são calculados antes da primeira atribuição: se algum
        cálculo falhar, a sessão fica como estava.
        """
        percentual = inferir_percentual_imposto(nota.total_impostos, nota.subtotal)

        itens = []
        for idx, item_xml in enumerate(nota.itens):
            produto = self._casar_produto(item_xml.nome, item_xml.sku)
            itens.append(ItemEntrada(
                chave=_nova_chave(f"xml-{idx}"),
                nome=produto["nome"] if produto else item_xml.nome,
                quantidade=item_xml.quantidade,
                custo_unitario=arredondar_moeda(item_xml.custo_unitario),
                produto_id=produto["id"] if produto else None,
                novo_produto=produto is None,
                sku=item_xml.sku,
                ncm=item_xml.ncm,
            ))

        fornecedor_id = self.fornecedor_id
        observacoes = self.observacoes
        if nota.nome_fornecedor:
            fornecedor = self._casar_fornecedor(nota.nome_fornecedor)
            if fornecedor is not None:
                fornecedor_id = fornecedor["id"]
            else:
                doc = f" ({nota.documento_fornecedor})" if nota.documento_fornecedor else ""
                observacoes = f"Fornecedor NF: {nota.nome_fornecedor}{doc}"

        if nota.numero_nota:
            self.numero_nota = nota.numero_nota
        if nota.chave_acesso:
            self.chave_acesso = nota.chave_acesso
        if nota.data_entrada:
            self.data_entrada = nota.data_entrada
        if nota.valor_frete > 0:
            self.valor_frete = nota.valor_frete
        if percentual is not None:
            self.percentual_imposto = percentual
        self.fornecedor_id = fornecedor_id
        self.observacoes = observacoes
        self.itens = itens

    def importar_xml(self, xml_text: Union[str, bytes]) -> NotaFiscalXML:
        """
        Lê e aplica uma NF-e. Em caso de falha a sessão fica intacta.

        Leitura e aplicação ficam sob o mesmo tratamento de erro: um valor do
        XML que não cabe na precisão decimal (ex: vUnCom=1E+30) também vira
        ImportacaoXMLError.

        Raises:
            ImportacaoXMLError: Mensagem única e genérica para o usuário.
        """
        try:
            nota = self.parser.parse_texto(xml_text)
            self.aplicar_nota_xml(nota)
        except (EntradaNFError, ArithmeticError) as e:
            logger.warning("Erro ao processar XML: %s", e)
            raise ImportacaoXMLError() from e

        logger.info("XML processado: %d item(ns) encontrado(s).", len(self.itens))
        return nota

    # =========================================================================
    # GRAVAÇÃO
    # =========================================================================

    def montar_payload(self) -> PayloadNotaEntrada:
        """
        Monta os dados para o repositório.

        O percentual vai como fração (15 → 0.15) e os outros custos vão
        somados, sem a lista detalhada.

        Raises:
            EntradaVaziaError: Nenhum item na nota.
        """
        if not self.itens:
            raise EntradaVaziaError("Adicione pelo menos um item à nota de entrada.")

        itens = tuple(
            ItemPayload(
                quantidade=item.quantidade,
                custo_unitario_bruto=item.custo_unitario,
                produto_id=item.produto_id,
                novo_produto=NovoProduto(nome=item.nome, sku=item.sku, ncm=item.ncm) if item.novo_produto else None,
            )
            for item in self.itens
        )

        return PayloadNotaEntrada(
            numero_nota=self.numero_nota or None,
            chave_acesso=self.chave_acesso or None,
            fornecedor_id=self.fornecedor_id or None,
            data_entrada=self.data_entrada,
            valor_frete=self.valor_frete,
            percentual_imposto=self.percentual_imposto / CEM,
            outros_custos=self.total_outros_custos,
            observacoes=self.observacoes or None,
            itens=itens,
        )
