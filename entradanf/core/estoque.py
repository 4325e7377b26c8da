"""
================================================================================
MÓDULO: estoque.py - Repositório de estoque, notas de entrada e contas a pagar
================================================================================

Persistência simples em um arquivo JSON, carregado inteiro na inicialização e
reescrito inteiro a cada gravação.

ESTRUTURA DO JSON:
------------------
    {
        "produtos":        {id: {nome, sku, ncm, preco, estoque, custo_medio}},
        "fornecedores":    {id: {nome, documento}},
        "notas_entrada":   {id: {numero_nota, chave_acesso, totais, ...}},
        "entradas_estoque": [{produto_id, nota_id, quantidade, saldo, custo_unitario, ...}],
        "contas_pagar":    [{descricao, valor, vencimento, status, nota_id, ...}],
        "notificacoes":    [{tipo, perfil, titulo, descricao, nota_id, ...}]
    }

Valores monetários são gravados como texto ("12.10") para não perder
precisão; quantidades também.

AO REGISTRAR UMA NOTA:
----------------------
    1. Rateio recalculado com o mesmo motor da tela
    2. Produtos novos cadastrados (preço zero)
    3. Uma entrada de estoque por item, com custo rateado e custo bruto
    4. Estoque e custo médio dos produtos afetados recalculados
    5. Conta a pagar com vencimento em N dias (padrão 30)
    6. Notificações: precificação de produtos novos e revisão do pagamento

Tudo é montado numa cópia dos dados; o arquivo só é reescrito se todas as
etapas derem certo.
================================================================================
"""

import copy
import json
import os
import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from colorama import Fore

from entradanf.utils.formatting import formatar_moeda

from .exceptions import EntradaVaziaError, ItemInvalidoError, NotaNaoEncontradaError
from .models import PayloadNotaEntrada, ZERO, para_decimal
from .rateio import CEM, arredondar_moeda, calcular_rateio


PRAZO_PAGAMENTO_DIAS = 30

CATEGORIA_CMV = {"codigo": "2.1", "nome": "CMV (Custo da Mercadoria)"}

COLECOES = ("produtos", "fornecedores", "notas_entrada")
LISTAS = ("entradas_estoque", "contas_pagar", "notificacoes")


def _novo_id() -> str:
    return uuid.uuid4().hex


def _texto(valor: Decimal) -> str:
    return str(valor)


class EstoqueRepository:
    """
    Repositório JSON do estoque.

    Attributes:
        json_path (str): Arquivo de dados.
        prazo_pagamento_dias (int): Dias entre a entrada e o vencimento da conta.
        data (dict): Conteúdo carregado.

    Example:
        >>> repo = EstoqueRepository("data/estoque.json")
        >>> fornecedor = repo.cadastrar_fornecedor("Distribuidora Sul", "12345678000199")
        >>> nota = repo.registrar_nota_entrada(sessao.montar_payload())
        >>> nota["custo_total"]
        '60.50'
    """

    def __init__(self, json_path: str, prazo_pagamento_dias: int = PRAZO_PAGAMENTO_DIAS):
        self.json_path = json_path
        self.prazo_pagamento_dias = prazo_pagamento_dias
        self.data: Dict[str, Any] = {}
        self._load_database()

    # =========================================================================
    # ARQUIVO
    # =========================================================================

    def _load_database(self) -> None:
        """
        Carrega o JSON do disco. Arquivo inexistente vira banco vazio.

        Raises:
            json.JSONDecodeError: Arquivo existe mas está corrompido.
        """
        if os.path.exists(self.json_path):
            with open(self.json_path, "r", encoding="utf-8") as f:
                self.data = json.load(f)
            print(Fore.GREEN + f"✅ Estoque carregado: {self.json_path}")
        else:
            print(Fore.YELLOW + f"⚠️  Arquivo {self.json_path} não encontrado. Criando estoque vazio...")
            self.data = {}

        for chave in COLECOES:
            self.data.setdefault(chave, {})
        for chave in LISTAS:
            self.data.setdefault(chave, [])

    def _salvar(self, data: Dict[str, Any]) -> None:
        pasta = os.path.dirname(self.json_path)
        if pasta:
            os.makedirs(pasta, exist_ok=True)

        with open(self.json_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=4)
        self.data = data

    # =========================================================================
    # CADASTROS
    # =========================================================================

    def cadastrar_produto(self, nome: str, sku: Optional[str] = None, ncm: Optional[str] = None,
                          preco: Any = ZERO) -> Dict[str, Any]:
        nome = (nome or "").strip()
        if not nome:
            raise ItemInvalidoError("Informe o nome do produto.")

        data = copy.deepcopy(self.data)
        produto = self._criar_produto(data, nome, sku, ncm, preco)
        self._salvar(data)
        return produto

    def cadastrar_fornecedor(self, nome: str, documento: Optional[str] = None) -> Dict[str, Any]:
        nome = (nome or "").strip()
        if not nome:
            raise ItemInvalidoError("Informe o nome do fornecedor.")

        data = copy.deepcopy(self.data)
        fornecedor = {"id": _novo_id(), "nome": nome, "documento": documento or None}
        data["fornecedores"][fornecedor["id"]] = fornecedor
        self._salvar(data)
        return fornecedor

    def listar_produtos(self) -> List[Dict[str, Any]]:
        return sorted(self.data["produtos"].values(), key=lambda p: p["nome"].lower())

    def listar_fornecedores(self) -> List[Dict[str, Any]]:
        return sorted(self.data["fornecedores"].values(), key=lambda f: f["nome"].lower())

    def buscar_produto(self, produto_id: str) -> Optional[Dict[str, Any]]:
        return self.data["produtos"].get(produto_id)

    def _criar_produto(self, data: Dict[str, Any], nome: str, sku: Optional[str],
                       ncm: Optional[str], preco: Any = ZERO) -> Dict[str, Any]:
        produto = {
            "id": _novo_id(),
            "nome": nome,
            "sku": sku or None,
            "ncm": ncm or None,
            "preco": _texto(arredondar_moeda(para_decimal(preco, default=ZERO))),
            "estoque": "0",
            "custo_medio": "0.00",
            "criado_em": datetime.now().isoformat(),
        }
        data["produtos"][produto["id"]] = produto
        return produto

    # =========================================================================
    # ESTOQUE
    # =========================================================================

    @staticmethod
    def _recalcular_produto(data: Dict[str, Any], produto_id: str) -> None:
        """Estoque = soma dos saldos; custo médio = média ponderada pelos saldos."""
        produto = data["produtos"].get(produto_id)
        if produto is None:
            return

        entradas = [e for e in data["entradas_estoque"] if e["produto_id"] == produto_id]
        quantidade = sum((para_decimal(e["saldo"]) for e in entradas), ZERO)
        valor = sum((para_decimal(e["saldo"]) * para_decimal(e["custo_unitario"]) for e in entradas), ZERO)
        custo_medio = valor / quantidade if quantidade > 0 else ZERO

        produto["estoque"] = _texto(quantidade)
        produto["custo_medio"] = _texto(arredondar_moeda(custo_medio))

    @staticmethod
    def _rotulo(nota_id: str, numero_nota: Optional[str]) -> str:
        """'NF 123' ou 'Entrada #A1B2C3' quando a nota não tem número."""
        if numero_nota:
            return f"NF {numero_nota}"
        return f"Entrada #{nota_id[-6:].upper()}"

    def registrar_nota_entrada(self, payload: PayloadNotaEntrada) -> Dict[str, Any]:
        """
        Grava uma nota de entrada com estoque, conta a pagar e notificações.

        Args:
            payload (PayloadNotaEntrada): Montado por SessaoEntrada.montar_payload().
                percentual_imposto vem como fração (0.15 = 15%).

        Returns:
            dict: A nota gravada (valores como texto).

        Raises:
            EntradaVaziaError: Payload sem itens.
            ItemInvalidoError: Item sem produto existente nem produto novo.
        """
        if not payload.itens:
            raise EntradaVaziaError("A nota de entrada deve conter pelo menos um item.")

        rateio = calcular_rateio(
            payload.itens,
            valor_frete=payload.valor_frete,
            percentual_imposto=para_decimal(payload.percentual_imposto) * CEM,
            outros_custos=payload.outros_custos,
        )
        custo_total = arredondar_moeda(rateio.custo_total)

        data = copy.deepcopy(self.data)
        nota_id = _novo_id()
        rotulo = self._rotulo(nota_id, payload.numero_nota)

        if payload.fornecedor_id and payload.fornecedor_id not in data["fornecedores"]:
            raise ItemInvalidoError(f"Fornecedor {payload.fornecedor_id} não encontrado.")

        # ---------------------------------------------------------------------
        # Itens: produtos novos + entradas de estoque
        # ---------------------------------------------------------------------
        novos_produtos = []
        afetados = []
        itens_gravados = []

        for item_rateado in rateio.itens:
            item = item_rateado.item
            produto_id = item.produto_id

            if not produto_id and item.novo_produto is not None:
                produto = self._criar_produto(data, item.novo_produto.nome, item.novo_produto.sku,
                                              item.novo_produto.ncm)
                produto_id = produto["id"]
                novos_produtos.append(produto)

            if not produto_id or produto_id not in data["produtos"]:
                raise ItemInvalidoError(f"Item sem produto válido: {produto_id or '(vazio)'}")

            entrada = {
                "id": _novo_id(),
                "produto_id": produto_id,
                "nota_id": nota_id,
                "quantidade": _texto(item.quantidade),
                "saldo": _texto(item.quantidade),
                "custo_unitario": _texto(item_rateado.custo_rateado),
                "custo_unitario_bruto": _texto(item.custo_unitario_bruto),
            }
            data["entradas_estoque"].append(entrada)
            itens_gravados.append(entrada)
            if produto_id not in afetados:
                afetados.append(produto_id)

        for produto_id in afetados:
            self._recalcular_produto(data, produto_id)

        # ---------------------------------------------------------------------
        # Nota
        # ---------------------------------------------------------------------
        nota = {
            "id": nota_id,
            "numero_nota": payload.numero_nota,
            "chave_acesso": payload.chave_acesso,
            "fornecedor_id": payload.fornecedor_id,
            "data_entrada": payload.data_entrada.isoformat(),
            "subtotal": _texto(arredondar_moeda(rateio.subtotal)),
            "valor_frete": _texto(rateio.valor_frete),
            "percentual_imposto": _texto(para_decimal(payload.percentual_imposto)),
            "outros_custos": _texto(rateio.outros_custos),
            "custo_total": _texto(custo_total),
            "observacoes": payload.observacoes,
            "status_pagamento": "PENDENTE",
            "itens": [e["id"] for e in itens_gravados],
            "criado_em": datetime.now().isoformat(),
        }
        data["notas_entrada"][nota_id] = nota

        # ---------------------------------------------------------------------
        # Conta a pagar
        # ---------------------------------------------------------------------
        vencimento = payload.data_entrada + timedelta(days=self.prazo_pagamento_dias)
        data["contas_pagar"].append({
            "id": _novo_id(),
            "descricao": f"Compra de Mercadoria - {rotulo}",
            "valor": _texto(custo_total),
            "status": "pendente",
            "vencimento": vencimento.isoformat(),
            "competencia": payload.data_entrada.isoformat(),
            "categoria": dict(CATEGORIA_CMV),
            "fornecedor_id": payload.fornecedor_id,
            "nota_id": nota_id,
        })

        # ---------------------------------------------------------------------
        # Notificações
        # ---------------------------------------------------------------------
        self._notificar(data, nota_id, rotulo, novos_produtos, custo_total)

        self._salvar(data)
        print(Fore.GREEN + f"✅ {rotulo} registrada: {len(itens_gravados)} item(ns), total R$ {custo_total}")
        return nota

    @staticmethod
    def _notificar(data: Dict[str, Any], nota_id: str, rotulo: str,
                   novos_produtos: List[Dict[str, Any]], custo_total: Decimal) -> None:
        hoje = date.today().isoformat()

        if novos_produtos:
            if len(novos_produtos) == 1:
                titulo = "Produto sem preço de venda"
                descricao = (f'O produto "{novos_produtos[0]["nome"]}" foi cadastrado via {rotulo}. '
                             "Defina o preço de venda.")
            else:
                nomes = ", ".join(p["nome"] for p in novos_produtos)
                titulo = f"{len(novos_produtos)} produtos sem preço de venda"
                descricao = f"Produtos cadastrados via {rotulo}: {nomes}. Defina os preços de venda."

            data["notificacoes"].append({
                "id": _novo_id(),
                "tipo": "PRECIFICACAO_PENDENTE",
                "perfil": "COMERCIAL",
                "titulo": titulo,
                "descricao": descricao,
                "nota_id": nota_id,
                "status": "PENDENTE",
                "vence_em": hoje,
            })

        data["notificacoes"].append({
            "id": _novo_id(),
            "tipo": "REVISAO_PAGAMENTO",
            "perfil": "FINANCEIRO",
            "titulo": f"Conta a pagar - {rotulo}",
            "descricao": f"Revise o vencimento da compra de mercadoria ({formatar_moeda(custo_total)}).",
            "nota_id": nota_id,
            "valor_esperado": _texto(custo_total),
            "status": "PENDENTE",
            "vence_em": hoje,
        })

    # =========================================================================
    # CONSULTAS / EXCLUSÃO
    # =========================================================================

    def listar_notas_entrada(self) -> List[Dict[str, Any]]:
        """Notas da mais recente para a mais antiga (data de entrada)."""
        return sorted(self.data["notas_entrada"].values(), key=lambda n: n["data_entrada"], reverse=True)

    def buscar_nota_entrada(self, nota_id: str) -> Optional[Dict[str, Any]]:
        """Nota com fornecedor, entradas de estoque e contas a pagar vinculadas."""
        nota = self.data["notas_entrada"].get(nota_id)
        if nota is None:
            return None

        detalhe = dict(nota)
        detalhe["fornecedor"] = self.data["fornecedores"].get(nota["fornecedor_id"]) if nota["fornecedor_id"] else None
        detalhe["itens"] = [
            dict(e, produto=self.data["produtos"].get(e["produto_id"]))
            for e in self.data["entradas_estoque"] if e["nota_id"] == nota_id
        ]
        detalhe["contas_pagar"] = sorted(
            (c for c in self.data["contas_pagar"] if c["nota_id"] == nota_id),
            key=lambda c: c["vencimento"],
        )
        return detalhe

    def listar_contas_pagar(self) -> List[Dict[str, Any]]:
        return sorted(self.data["contas_pagar"], key=lambda c: c["vencimento"])

    def listar_notificacoes(self) -> List[Dict[str, Any]]:
        return list(self.data["notificacoes"])

    def excluir_nota_entrada(self, nota_id: str) -> None:
        """
        Exclui a nota, suas entradas de estoque e contas a pagar, e recalcula
        os produtos afetados.

        Raises:
            NotaNaoEncontradaError: Nota inexistente.
        """
        if nota_id not in self.data["notas_entrada"]:
            raise NotaNaoEncontradaError("Nota de entrada não encontrada")

        data = copy.deepcopy(self.data)
        afetados = {e["produto_id"] for e in data["entradas_estoque"] if e["nota_id"] == nota_id}

        data["contas_pagar"] = [c for c in data["contas_pagar"] if c["nota_id"] != nota_id]
        data["entradas_estoque"] = [e for e in data["entradas_estoque"] if e["nota_id"] != nota_id]
        del data["notas_entrada"][nota_id]

        for produto_id in afetados:
            self._recalcular_produto(data, produto_id)

        self._salvar(data)
        print(Fore.YELLOW + "🗑️  Nota de entrada excluída.")

    def get_estatisticas(self) -> Dict[str, int]:
        return {
            "total_produtos": len(self.data["produtos"]),
            "total_fornecedores": len(self.data["fornecedores"]),
            "total_notas": len(self.data["notas_entrada"]),
            "contas_pendentes": sum(1 for c in self.data["contas_pagar"] if c["status"] == "pendente"),
        }
