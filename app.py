"""
================================================================================
ENTRADA NF - Aplicação Web Streamlit
================================================================================

Tela de entrada de mercadorias:

- Importação de XML de NF-e (ou digitação manual dos itens)
- Frete, percentual de imposto e outros custos editáveis
- Rateio recalculado a cada alteração
- Registro da nota no estoque (custo médio + conta a pagar)
- Histórico de notas de entrada com exclusão
- Download do relatório Excel do rateio

COMO EXECUTAR:
--------------
    streamlit run app.py
================================================================================
"""

from datetime import datetime

import pandas as pd
import streamlit as st

from entradanf import config
from entradanf.core.entrada import SessaoEntrada
from entradanf.core.estoque import EstoqueRepository
from entradanf.core.exceptions import EntradaNFError
from entradanf.utils.exporter import ReportGenerator
from entradanf.utils.formatting import formatar_moeda, formatar_percentual, parse_valor_brl


# =============================================================================
# CONFIGURAÇÃO DA PÁGINA
# =============================================================================

st.set_page_config(
    page_title="Entrada NF - Entrada de Mercadorias",
    page_icon="📦",
    layout="wide",
    initial_sidebar_state="expanded"
)

config.configure_logging()


# =============================================================================
# AUTENTICAÇÃO
# =============================================================================

def check_password():
    """Verifica se a senha está correta."""

    def password_entered():
        correct_password = st.secrets.get("APP_PASSWORD", config.APP_PASSWORD)

        if st.session_state["password"] == correct_password:
            st.session_state["password_correct"] = True
            del st.session_state["password"]
        else:
            st.session_state["password_correct"] = False

    if st.session_state.get("password_correct"):
        return True

    st.markdown("## 📦 Entrada NF")
    col1, col2, col3 = st.columns([1, 1, 1])
    with col2:
        st.text_input(
            "🔐 Digite a senha de acesso:",
            type="password",
            on_change=password_entered,
            key="password"
        )
        if st.session_state.get("password_correct") is False:
            st.error("❌ Senha incorreta. Tente novamente.")
    return False


# =============================================================================
# ESTADO
# =============================================================================

@st.cache_resource
def load_repository():
    """Carrega o repositório de estoque (com cache do Streamlit)."""
    return EstoqueRepository(config.DB_PATH, prazo_pagamento_dias=config.PRAZO_PAGAMENTO_DIAS)


def nova_sessao(repo: EstoqueRepository) -> SessaoEntrada:
    sessao = SessaoEntrada(produtos=repo.listar_produtos(), fornecedores=repo.listar_fornecedores())
    st.session_state.sessao = sessao
    return sessao


def get_sessao(repo: EstoqueRepository) -> SessaoEntrada:
    if "sessao" not in st.session_state:
        return nova_sessao(repo)
    return st.session_state.sessao


@st.cache_resource
def load_exporter():
    return ReportGenerator(output_folder=config.OUTPUT_DIR)


def texto_valor(valor) -> str:
    return f"{valor:.2f}".replace(".", ",")


def ler_valor(texto):
    try:
        return parse_valor_brl(texto)
    except EntradaNFError:
        return None


def campo_valor(label: str, valor, key: str, area=st):
    """Campo de texto em formato brasileiro; devolve Decimal ou None se inválido."""
    texto = area.text_input(label, value=texto_valor(valor), key=key)
    try:
        return parse_valor_brl(texto)
    except EntradaNFError as e:
        area.error(str(e))
        return None


def _aplicar_campo(key: str, ao_alterar) -> None:
    try:
        ao_alterar(parse_valor_brl(st.session_state[key]))
    except EntradaNFError as e:
        st.session_state[f"{key}_erro"] = str(e)


def campo_sessao(label: str, valor, key: str, ao_alterar, area=st) -> None:
    """
    Campo de texto ligado a um valor da sessão de entrada.

    A sessão manda: se o valor mudou por fora (XML importado, nova entrada),
    o texto do campo é reescrito antes de o widget ser criado. O setter
    `ao_alterar` só roda quando o usuário edita o campo.
    """
    if ler_valor(st.session_state.get(key)) != valor:
        st.session_state[key] = texto_valor(valor)

    area.text_input(label, key=key, on_change=_aplicar_campo, args=(key, ao_alterar))

    erro = st.session_state.pop(f"{key}_erro", None)
    if erro:
        area.error(erro)


# =============================================================================
# BLOCOS DA TELA
# =============================================================================

def bloco_importacao(sessao: SessaoEntrada) -> None:
    st.header("📁 Importar NF-e")

    uploaded_file = st.file_uploader(
        "Arraste o XML da nota ou clique para selecionar",
        type=["xml"],
        help="XML de NF-e do fornecedor"
    )

    if uploaded_file is not None and st.session_state.get("xml_importado") != uploaded_file.file_id:
        try:
            sessao.importar_xml(uploaded_file.getvalue())
            st.success(f"✅ XML processado: {len(sessao.itens)} item(ns) encontrado(s).")
        except EntradaNFError as e:
            st.error(f"❌ {e}")
        st.session_state.xml_importado = uploaded_file.file_id


def bloco_cabecalho(sessao: SessaoEntrada, repo: EstoqueRepository) -> None:
    st.subheader("🧾 Dados da Nota")
    col1, col2, col3 = st.columns(3)

    with col1:
        sessao.numero_nota = st.text_input("Nº NF", value=sessao.numero_nota)
        sessao.data_entrada = st.date_input("Data de entrada", value=sessao.data_entrada, format="DD/MM/YYYY")
    with col2:
        sessao.chave_acesso = st.text_input("Chave de acesso", value=sessao.chave_acesso)
        fornecedores = repo.listar_fornecedores()
        opcoes = [None] + [f["id"] for f in fornecedores]
        nomes = {f["id"]: f["nome"] for f in fornecedores}
        sessao.fornecedor_id = st.selectbox(
            "Fornecedor",
            opcoes,
            index=opcoes.index(sessao.fornecedor_id) if sessao.fornecedor_id in opcoes else 0,
            format_func=lambda fid: nomes.get(fid, "-"),
        )
    with col3:
        sessao.observacoes = st.text_area("Observações", value=sessao.observacoes)


def bloco_itens(sessao: SessaoEntrada, repo: EstoqueRepository) -> None:
    st.subheader("📦 Itens")

    with st.expander("➕ Adicionar item"):
        modo = st.radio("Produto", ["Catálogo", "Novo produto"], horizontal=True)
        col1, col2 = st.columns(2)
        with col1:
            quantidade = st.number_input("Quantidade", min_value=0.0, value=1.0, step=1.0)
        with col2:
            custo = campo_valor("Custo unitário (R$)", 0, key="novo_item_custo")

        try:
            if modo == "Catálogo":
                produtos = repo.listar_produtos()
                produto_id = st.selectbox("Produto do catálogo", [p["id"] for p in produtos],
                                          format_func=lambda pid: repo.buscar_produto(pid)["nome"])
                if st.button("Adicionar"):
                    sessao.adicionar_item_catalogo(produto_id, str(quantidade), custo)
            else:
                nome = st.text_input("Nome do produto")
                sku = st.text_input("SKU")
                ncm = st.text_input("NCM")
                if st.button("Adicionar"):
                    sessao.adicionar_item_novo(nome, str(quantidade), custo, sku=sku, ncm=ncm)
        except EntradaNFError as e:
            st.error(str(e))

    for item in list(sessao.itens):
        col1, col2, col3, col4 = st.columns([4, 1, 2, 1])
        col1.write(("🆕 " if item.novo_produto else "") + item.nome)
        col2.write(f"{item.quantidade}")
        col3.write(formatar_moeda(item.custo_unitario))
        if col4.button("🗑️", key=f"rm-{item.chave}"):
            sessao.remover_item(item.chave)
            st.rerun()


def bloco_custos(sessao: SessaoEntrada) -> None:
    st.subheader("🚚 Custos")
    col1, col2 = st.columns(2)

    try:
        campo_sessao("Frete (R$)", sessao.valor_frete, key="frete",
                     ao_alterar=sessao.definir_frete, area=col1)
        campo_sessao("Impostos (%)", sessao.percentual_imposto, key="imposto",
                     ao_alterar=sessao.definir_percentual_imposto, area=col2)

        st.caption("Outros custos")
        for custo in list(sessao.outros_custos):
            c1, c2, c3 = st.columns([3, 2, 1])
            descricao = c1.text_input("Descrição", value=custo.descricao, key=f"desc-{custo.id}")
            sessao.atualizar_outro_custo(custo.id, descricao=descricao)
            campo_sessao("Valor (R$)", custo.valor, key=f"valor-{custo.id}",
                         ao_alterar=lambda valor, cid=custo.id: sessao.atualizar_outro_custo(cid, valor=valor),
                         area=c2)
            if c3.button("🗑️", key=f"rm-{custo.id}"):
                sessao.remover_outro_custo(custo.id)
                st.rerun()
        if st.button("➕ Outro custo"):
            sessao.adicionar_outro_custo()
            st.rerun()
    except EntradaNFError as e:
        st.error(str(e))


def bloco_rateio(sessao: SessaoEntrada, repo: EstoqueRepository) -> None:
    resultado = sessao.rateio
    st.header("🧮 Rateio")

    if not resultado.itens:
        st.info("Adicione itens ou importe um XML para ver o rateio.")
        return

    linhas = ReportGenerator.linhas_rateio(resultado)
    df = pd.DataFrame(linhas)[["produto", "quantidade", "custo_unitario", "subtotal", "proporcao", "custo_rateado"]]
    df.columns = ["Produto", "Qtd", "Custo NF", "Subtotal", "%", "Custo Rateado"]
    for coluna in ["Custo NF", "Subtotal", "Custo Rateado"]:
        df[coluna] = df[coluna].apply(formatar_moeda)
    st.dataframe(df, hide_index=True)

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Subtotal", formatar_moeda(resultado.subtotal))
    col2.metric("Frete + Outros", formatar_moeda(resultado.valor_frete + resultado.outros_custos))
    col3.metric(f"Impostos ({formatar_percentual(resultado.percentual_imposto)})",
                formatar_moeda(resultado.valor_impostos))
    col4.metric("💰 Custo Total", formatar_moeda(resultado.custo_total))

    st.divider()
    col1, col2, col3 = st.columns([1, 1, 1])

    with col1:
        excel_data = load_exporter().gerar_excel_bytes(resultado, sessao.numero_nota)
        if excel_data:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            st.download_button(
                label="📥 BAIXAR RATEIO (EXCEL)",
                data=excel_data,
                file_name=f"Entrada_Rateio_{timestamp}.xlsx",
                mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
            )
    with col2:
        if st.button("✅ REGISTRAR ENTRADA", type="primary"):
            try:
                repo.registrar_nota_entrada(sessao.montar_payload())
            except EntradaNFError as e:
                st.error(f"❌ {e}")
            else:
                st.success("Nota de entrada processada com sucesso!")
                nova_sessao(repo)
                st.rerun()
    with col3:
        if st.button("Cancelar"):
            nova_sessao(repo)
            st.rerun()


def bloco_historico(repo: EstoqueRepository) -> None:
    st.header("📋 Notas de Entrada")
    notas = repo.listar_notas_entrada()

    if not notas:
        st.caption("Nenhuma nota registrada.")
        return

    fornecedores = {f["id"]: f["nome"] for f in repo.listar_fornecedores()}
    for nota in notas:
        col1, col2, col3, col4, col5 = st.columns([2, 2, 3, 2, 1])
        col1.write(datetime.fromisoformat(nota["data_entrada"]).strftime("%d/%m/%Y"))
        col2.write(nota["numero_nota"] or "-")
        col3.write(fornecedores.get(nota["fornecedor_id"], "-"))
        col4.write(formatar_moeda(nota["custo_total"]))
        if col5.button("🗑️", key=f"del-{nota['id']}"):
            try:
                repo.excluir_nota_entrada(nota["id"])
                st.rerun()
            except EntradaNFError as e:
                st.error(str(e))


# =============================================================================
# INTERFACE PRINCIPAL
# =============================================================================

def main():
    if not check_password():
        return

    repo = load_repository()
    sessao = get_sessao(repo)

    with st.sidebar:
        st.header("📦 Entrada NF")
        stats = repo.get_estatisticas()
        st.caption(f"📊 {stats['total_produtos']} produtos | {stats['total_fornecedores']} fornecedores")
        st.caption(f"🧾 {stats['total_notas']} notas | {stats['contas_pendentes']} contas pendentes")

        st.divider()
        if st.button("🚪 Sair", type="secondary"):
            st.session_state["password_correct"] = False
            st.rerun()

    bloco_importacao(sessao)
    st.divider()
    bloco_cabecalho(sessao, repo)
    bloco_itens(sessao, repo)
    bloco_custos(sessao)
    st.divider()
    bloco_rateio(sessao, repo)
    st.divider()
    bloco_historico(repo)


if __name__ == "__main__":
    main()
