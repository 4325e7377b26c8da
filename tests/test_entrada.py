"""
================================================================================
TESTES UNITÁRIOS - Sessão de entrada
================================================================================

Execute com: pytest tests/ -v
"""

import os
import sys
from datetime import date
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from entradanf.core.entrada import SessaoEntrada
from entradanf.core.exceptions import (
    EntradaVaziaError,
    ImportacaoXMLError,
    ItemInvalidoError,
    ProdutoDuplicadoError,
    ValorInvalidoError,
)
from entradanf.core.models import ItemNota, NotaFiscalXML


PRODUTOS = [
    {"id": "p1", "nome": "Parafuso 6mm", "sku": "PAR-6"},
    {"id": "p2", "nome": "Bucha 6mm", "sku": None},
]

FORNECEDORES = [
    {"id": "f1", "nome": "Distribuidora Sul"},
    {"id": "f2", "nome": "Atacado Norte"},
]

XML_SIMPLES = """<NFe><infNFe Id="NFe999">
  <ide><nNF>42</nNF><dhEmi>2025-06-01T10:00:00-03:00</dhEmi></ide>
  <emit><CNPJ>11222333000144</CNPJ><xNome>DISTRIBUIDORA SUL LTDA</xNome></emit>
  <det><prod><cProd>PAR-6</cProd><xProd>PARAFUSO SEXTAVADO</xProd><qCom>2</qCom><vUnCom>10.004</vUnCom></prod></det>
  <det><prod><xProd>ARRUELA</xProd><qCom>1</qCom><vUnCom>30.00</vUnCom></prod></det>
  <total><ICMSTot><vFrete>5.00</vFrete><vICMS>7.50</vICMS></ICMSTot></total>
</infNFe></NFe>"""


class TestItens:

    def setup_method(self):
        self.sessao = SessaoEntrada(produtos=PRODUTOS, fornecedores=FORNECEDORES)

    def test_sessao_nova_vazia(self):
        assert self.sessao.itens == []
        assert self.sessao.valor_frete == Decimal("0")
        assert self.sessao.percentual_imposto == Decimal("0")
        assert self.sessao.data_entrada == date.today()

    def test_adicionar_item_catalogo(self):
        item = self.sessao.adicionar_item_catalogo("p1", "2", "10.00")

        assert item.nome == "Parafuso 6mm"
        assert item.produto_id == "p1"
        assert item.sku == "PAR-6"
        assert not item.novo_produto
        assert item.quantidade == Decimal("2")

    @pytest.mark.parametrize("quantidade,custo", [("0", "10"), ("2", "0"), ("-1", "5"), ("", "5"), ("2", "abc")])
    def test_quantidade_ou_custo_invalido(self, quantidade, custo):
        with pytest.raises(ItemInvalidoError, match="Preencha quantidade e custo unitário."):
            self.sessao.adicionar_item_catalogo("p1", quantidade, custo)
        assert self.sessao.itens == []

    def test_produto_nao_informado(self):
        with pytest.raises(ItemInvalidoError):
            self.sessao.adicionar_item_catalogo("", "1", "1")

    def test_produto_inexistente(self):
        with pytest.raises(ItemInvalidoError):
            self.sessao.adicionar_item_catalogo("p99", "1", "1")

    def test_produto_duplicado(self):
        self.sessao.adicionar_item_catalogo("p1", "1", "1")

        with pytest.raises(ProdutoDuplicadoError, match="Produto já adicionado."):
            self.sessao.adicionar_item_catalogo("p1", "3", "2")
        assert len(self.sessao.itens) == 1

    def test_duplicado_tambem_e_item_invalido(self):
        assert issubclass(ProdutoDuplicadoError, ItemInvalidoError)

    def test_adicionar_item_novo(self):
        item = self.sessao.adicionar_item_novo("  Porca M6 ", "10", "0.35", sku=" ", ncm="73181600")

        assert item.nome == "Porca M6"
        assert item.novo_produto
        assert item.produto_id is None
        assert item.sku is None
        assert item.ncm == "73181600"

    def test_item_novo_sem_nome(self):
        with pytest.raises(ItemInvalidoError, match="Informe o nome do produto."):
            self.sessao.adicionar_item_novo("   ", "1", "1")

    def test_remover_item(self):
        a = self.sessao.adicionar_item_catalogo("p1", "1", "1")
        b = self.sessao.adicionar_item_novo("Porca", "1", "1")

        self.sessao.remover_item(a.chave)
        assert [i.chave for i in self.sessao.itens] == [b.chave]

        # produto removido pode voltar
        self.sessao.adicionar_item_catalogo("p1", "1", "1")
        assert len(self.sessao.itens) == 2


class TestCustos:

    def setup_method(self):
        self.sessao = SessaoEntrada(produtos=PRODUTOS)
        self.sessao.adicionar_item_catalogo("p1", "2", "10.00")
        self.sessao.adicionar_item_catalogo("p2", "1", "30.00")

    def test_rateio_recalculado_a_cada_alteracao(self):
        self.sessao.definir_frete("5.00")
        self.sessao.definir_percentual_imposto("10")

        resultado = self.sessao.rateio
        assert resultado.custo_total == Decimal("60.50")
        assert [i.custo_rateado for i in resultado.itens] == [Decimal("12.10"), Decimal("36.30")]

        self.sessao.definir_percentual_imposto(0)
        assert self.sessao.rateio.custo_total == Decimal("55.00")

    def test_frete_negativo(self):
        with pytest.raises(ValorInvalidoError):
            self.sessao.definir_frete("-1")

    @pytest.mark.parametrize("percentual", ["-0.01", "100.01", 150])
    def test_percentual_fora_da_faixa(self, percentual):
        with pytest.raises(ValorInvalidoError):
            self.sessao.definir_percentual_imposto(percentual)
        assert self.sessao.percentual_imposto == Decimal("0")

    def test_percentual_nos_limites(self):
        self.sessao.definir_percentual_imposto(0)
        self.sessao.definir_percentual_imposto(100)
        assert self.sessao.percentual_imposto == Decimal("100")

    def test_outros_custos(self):
        descarga = self.sessao.adicionar_outro_custo("Descarga", "12.50")
        seguro = self.sessao.adicionar_outro_custo("Seguro", "7.50")
        assert self.sessao.total_outros_custos == Decimal("20.00")

        self.sessao.atualizar_outro_custo(descarga.id, valor="2.50")
        assert self.sessao.total_outros_custos == Decimal("10.00")
        assert self.sessao.outros_custos[0].descricao == "Descarga"

        self.sessao.atualizar_outro_custo(seguro.id, descricao=" Seguro carga ")
        assert self.sessao.outros_custos[1].descricao == "Seguro carga"

        self.sessao.remover_outro_custo(descarga.id)
        assert [c.id for c in self.sessao.outros_custos] == [seguro.id]
        assert self.sessao.rateio.outros_custos == Decimal("7.50")

    def test_outro_custo_em_branco(self):
        custo = self.sessao.adicionar_outro_custo()
        assert custo.descricao == ""
        assert custo.valor == Decimal("0")

    def test_outro_custo_negativo(self):
        with pytest.raises(ValorInvalidoError):
            self.sessao.adicionar_outro_custo("Desconto", "-5")

        custo = self.sessao.adicionar_outro_custo("Taxa", "1")
        with pytest.raises(ValorInvalidoError):
            self.sessao.atualizar_outro_custo(custo.id, valor="-1")
        assert self.sessao.outros_custos[0].valor == Decimal("1")

    def test_limpar(self):
        self.sessao.definir_frete(10)
        self.sessao.adicionar_outro_custo("Taxa", "1")
        self.sessao.limpar()

        assert self.sessao.itens == []
        assert self.sessao.outros_custos == []
        assert self.sessao.valor_frete == Decimal("0")
        assert self.sessao.produtos == PRODUTOS


class TestImportacaoXML:

    def setup_method(self):
        self.sessao = SessaoEntrada(produtos=PRODUTOS, fornecedores=FORNECEDORES)

    def test_importar_preenche_sessao(self):
        self.sessao.importar_xml(XML_SIMPLES)

        assert self.sessao.numero_nota == "42"
        assert self.sessao.chave_acesso == "999"
        assert self.sessao.data_entrada == date(2025, 6, 1)
        assert self.sessao.valor_frete == Decimal("5.00")
        assert self.sessao.fornecedor_id == "f1"
        assert self.sessao.observacoes == ""

    def test_itens_casados_por_sku(self):
        self.sessao.importar_xml(XML_SIMPLES)
        parafuso, arruela = self.sessao.itens

        assert parafuso.produto_id == "p1"
        assert parafuso.nome == "Parafuso 6mm"
        assert not parafuso.novo_produto
        assert parafuso.custo_unitario == Decimal("10.00")

        assert arruela.produto_id is None
        assert arruela.novo_produto
        assert arruela.nome == "ARRUELA"

    def test_percentual_inferido(self):
        """7,50 de impostos sobre subtotal 50,008 → 15,00%."""
        self.sessao.importar_xml(XML_SIMPLES)
        assert self.sessao.percentual_imposto == Decimal("15.00")

    def test_percentual_editavel_depois_da_importacao(self):
        self.sessao.importar_xml(XML_SIMPLES)
        self.sessao.definir_percentual_imposto(8)
        assert self.sessao.rateio.percentual_imposto == Decimal("8")

    def test_casamento_por_nome_sem_diferenciar_caixa(self):
        nota = NotaFiscalXML(itens=(ItemNota("BUCHA 6MM", Decimal("4"), Decimal("1.5")),))
        self.sessao.aplicar_nota_xml(nota)

        assert self.sessao.itens[0].produto_id == "p2"

    def test_fornecedor_contido_no_nome_do_cadastro(self):
        nota = NotaFiscalXML(nome_fornecedor="atacado")
        self.sessao.aplicar_nota_xml(nota)
        assert self.sessao.fornecedor_id == "f2"

    def test_fornecedor_desconhecido_vai_para_observacoes(self):
        nota = NotaFiscalXML(nome_fornecedor="MERCANTIL OESTE", documento_fornecedor="55666777000188")
        self.sessao.aplicar_nota_xml(nota)

        assert self.sessao.fornecedor_id is None
        assert self.sessao.observacoes == "Fornecedor NF: MERCANTIL OESTE (55666777000188)"

    def test_campos_vazios_nao_sobrescrevem(self):
        self.sessao.numero_nota = "7"
        self.sessao.definir_frete(3)
        self.sessao.definir_percentual_imposto(4)

        self.sessao.aplicar_nota_xml(NotaFiscalXML())

        assert self.sessao.numero_nota == "7"
        assert self.sessao.valor_frete == Decimal("3")
        assert self.sessao.percentual_imposto == Decimal("4")
        assert self.sessao.itens == []

    def test_itens_substituem_os_atuais(self):
        self.sessao.adicionar_item_novo("Manual", "1", "1")
        self.sessao.importar_xml(XML_SIMPLES)
        assert [i.nome for i in self.sessao.itens] == ["Parafuso 6mm", "ARRUELA"]

    def test_xml_invalido_nao_altera_sessao(self):
        self.sessao.adicionar_item_novo("Manual", "1", "1")
        self.sessao.definir_frete(9)

        with pytest.raises(ImportacaoXMLError, match="Erro ao processar o arquivo XML. Verifique o formato."):
            self.sessao.importar_xml("<NFe><det>")

        assert [i.nome for i in self.sessao.itens] == ["Manual"]
        assert self.sessao.valor_frete == Decimal("9")

    def test_falha_ao_aplicar_nao_altera_sessao(self):
        """Custo que não cabe na precisão decimal falha sem deixar a nota pela metade."""
        self.sessao.adicionar_item_novo("Manual", "1", "1")
        xml = XML_SIMPLES.replace("<vUnCom>30.00</vUnCom>", "<vUnCom>1E+30</vUnCom>")

        with pytest.raises(ImportacaoXMLError):
            self.sessao.importar_xml(xml)

        assert self.sessao.numero_nota == ""
        assert self.sessao.chave_acesso == ""
        assert self.sessao.fornecedor_id is None
        assert self.sessao.valor_frete == Decimal("0")
        assert self.sessao.percentual_imposto == Decimal("0")
        assert self.sessao.data_entrada == date.today()
        assert [i.nome for i in self.sessao.itens] == ["Manual"]

    def test_importar_com_prefixo_sem_xmlns(self):
        xml = """<nfe:NFe><nfe:infNFe>
            <nfe:ide><nfe:nNF>123</nfe:nNF></nfe:ide>
            <nfe:det><nfe:prod><nfe:xProd>PORCA</nfe:xProd><nfe:qCom>3</nfe:qCom><nfe:vUnCom>1.25</nfe:vUnCom></nfe:prod></nfe:det>
        </nfe:infNFe></nfe:NFe>"""
        self.sessao.importar_xml(xml)

        assert self.sessao.numero_nota == "123"
        assert [(i.nome, i.quantidade, i.custo_unitario) for i in self.sessao.itens] == [
            ("PORCA", Decimal("3"), Decimal("1.25"))]


class TestPayload:

    def setup_method(self):
        self.sessao = SessaoEntrada(produtos=PRODUTOS, fornecedores=FORNECEDORES)

    def test_sessao_vazia(self):
        with pytest.raises(EntradaVaziaError, match="Adicione pelo menos um item à nota de entrada."):
            self.sessao.montar_payload()

    def test_payload(self):
        self.sessao.numero_nota = "42"
        self.sessao.fornecedor_id = "f1"
        self.sessao.adicionar_item_catalogo("p1", "2", "10.00")
        self.sessao.adicionar_item_novo("Porca", "1", "30.00", sku="POR-1")
        self.sessao.definir_frete("5")
        self.sessao.definir_percentual_imposto("15")
        self.sessao.adicionar_outro_custo("Descarga", "12.50")
        self.sessao.adicionar_outro_custo("Seguro", "7.50")

        payload = self.sessao.montar_payload()

        assert payload.numero_nota == "42"
        assert payload.chave_acesso is None
        assert payload.fornecedor_id == "f1"
        assert payload.percentual_imposto == Decimal("0.15")
        assert payload.outros_custos == Decimal("20.00")
        assert payload.valor_frete == Decimal("5")

        catalogo, novo = payload.itens
        assert catalogo.produto_id == "p1"
        assert catalogo.novo_produto is None
        assert catalogo.custo_unitario_bruto == Decimal("10.00")
        assert novo.produto_id is None
        assert novo.novo_produto.nome == "Porca"
        assert novo.novo_produto.sku == "POR-1"


# =============================================================================
# EXECUÇÃO DIRETA
# =============================================================================

if __name__ == "__main__":
    pytest.main([__file__, "-v"])
