"""
================================================================================
ENTRADA NF - Importação de NF-e de compra com rateio de custos
================================================================================

Ponto de entrada de linha de comando.

Lê todos os XMLs de NF-e de uma pasta, monta uma nota de entrada para cada um
(com o catálogo do estoque), calcula o rateio de frete, impostos e outros
custos e gera um relatório Excel por nota.

PIPELINE:
---------
    1. CARREGAMENTO: Estoque (produtos e fornecedores) do arquivo JSON
    2. PARSING: Cada XML vira uma NotaFiscalXML
    3. RATEIO: Custo unitário rateado por item
    4. EXPORTAÇÃO: Relatório Excel
    5. REGISTRO (opcional, --registrar): estoque, custo médio e conta a pagar

USO:
----
    $ entradanf
    $ entradanf --input notas/ --output relatorios/ --registrar
    $ python -m entradanf.main --outros-custos 12.50
================================================================================
"""

# =============================================================================
# IMPORTS
# =============================================================================
import argparse
import os
from decimal import Decimal
from typing import List, Optional

from colorama import Fore, init

from entradanf import config
from entradanf.core.entrada import SessaoEntrada
from entradanf.core.estoque import EstoqueRepository
from entradanf.core.exceptions import EntradaNFError
from entradanf.core.models import ResultadoRateio
from entradanf.utils.exporter import ReportGenerator
from entradanf.utils.formatting import formatar_documento, formatar_moeda, formatar_percentual, parse_valor_brl


# =============================================================================
# FUNÇÕES AUXILIARES
# =============================================================================

def print_header() -> None:
    """Imprime o cabeçalho visual do sistema."""
    print(Fore.CYAN + "=" * 60)
    print(Fore.CYAN + "📦 ENTRADA NF - IMPORTAÇÃO DE NF-e E RATEIO DE CUSTOS")
    print(Fore.CYAN + "=" * 60 + "\n")


def print_rateio(sessao: SessaoEntrada, resultado: ResultadoRateio) -> None:
    """Imprime cabeçalho da nota, itens rateados e totais."""
    print(Fore.WHITE + f"   Nota: {sessao.numero_nota or '-'} | Entrada: {sessao.data_entrada.strftime('%d/%m/%Y')}")
    if sessao.chave_acesso:
        print(Fore.WHITE + f"   Chave: {sessao.chave_acesso}")
    if sessao.observacoes:
        print(Fore.YELLOW + f"   {sessao.observacoes}")

    for item in resultado.itens:
        marcador = Fore.YELLOW + "   🆕" if item.item.novo_produto else Fore.WHITE + "   • "
        print(marcador + f" {item.nome[:40]:<40} {item.quantidade:>8} x {formatar_moeda(item.custo_unitario):>12}"
                         f" → {formatar_moeda(item.custo_rateado):>12}")

    print(Fore.CYAN + f"   Subtotal: {formatar_moeda(resultado.subtotal)} | Frete: {formatar_moeda(resultado.valor_frete)}"
                      f" | Outros: {formatar_moeda(resultado.outros_custos)}")
    print(Fore.CYAN + f"   Impostos ({formatar_percentual(resultado.percentual_imposto)}):"
                      f" {formatar_moeda(resultado.valor_impostos)}")
    print(Fore.GREEN + f"   💰 Custo total: {formatar_moeda(resultado.custo_total)}\n")


def print_summary(total_notas: int, total_itens: int, custo_total: Decimal, falhas: List[str]) -> None:
    """Imprime o resumo final do processamento."""
    print(Fore.GREEN + "=" * 60)
    print(Fore.WHITE + f"📄 Notas processadas: {total_notas} | Itens: {total_itens}")
    print(Fore.WHITE + f"💰 CUSTO TOTAL DAS ENTRADAS: {formatar_moeda(custo_total)}")
    print(Fore.GREEN + "=" * 60)

    if falhas:
        print(Fore.YELLOW + f"\n⚠️  {len(falhas)} arquivo(s) não processado(s):")
        for nome in falhas:
            print(Fore.YELLOW + f"   • {nome}")


# =============================================================================
# FUNÇÃO PRINCIPAL - PIPELINE DE PROCESSAMENTO
# =============================================================================

def process_pipeline(
    input_dir: str = config.INPUT_DIR,
    output_dir: str = config.OUTPUT_DIR,
    db_path: str = config.DB_PATH,
    registrar: bool = False,
    outros_custos: Decimal = Decimal("0"),
) -> int:
    """
    Processa todos os XMLs da pasta de entrada.

    Args:
        input_dir: Pasta com os arquivos .xml.
        output_dir: Pasta dos relatórios.
        db_path: Arquivo JSON do estoque.
        registrar: Grava cada nota no estoque depois do rateio.
        outros_custos: Custo adicional aplicado a cada nota.

    Returns:
        int: Quantidade de notas processadas com sucesso.
    """
    print_header()

    repo = EstoqueRepository(db_path, prazo_pagamento_dias=config.PRAZO_PAGAMENTO_DIAS)
    stats = repo.get_estatisticas()
    print(Fore.CYAN + f"📚 Catálogo: {stats['total_produtos']} produtos, {stats['total_fornecedores']} fornecedores\n")

    if not os.path.exists(input_dir):
        print(Fore.RED + f"❌ Diretório '{input_dir}' não encontrado!")
        print(Fore.YELLOW + "   Crie a pasta e coloque os arquivos XML nela.")
        return 0

    arquivos_xml = sorted(f for f in os.listdir(input_dir) if f.lower().endswith(".xml"))
    if not arquivos_xml:
        print(Fore.YELLOW + f"⚠️  Nenhum arquivo XML encontrado em '{input_dir}'.")
        return 0

    print(Fore.WHITE + f"📋 {len(arquivos_xml)} arquivo(s) para processar.\n")

    exporter = ReportGenerator(output_folder=output_dir)
    processadas = 0
    total_itens = 0
    custo_total = Decimal("0")
    falhas = []

    for xml_file in arquivos_xml:
        print(f"📂 Processando: {xml_file}...")

        sessao = SessaoEntrada(produtos=repo.listar_produtos(), fornecedores=repo.listar_fornecedores())
        try:
            with open(os.path.join(input_dir, xml_file), "rb") as f:
                nota = sessao.importar_xml(f.read())
        except (OSError, EntradaNFError) as e:
            print(Fore.RED + f"   ❌ {e}")
            falhas.append(xml_file)
            continue

        if not sessao.itens:
            print(Fore.YELLOW + f"   ⚠️  Nenhum item válido em {xml_file}")
            falhas.append(xml_file)
            continue

        if outros_custos > 0:
            sessao.adicionar_outro_custo("Custos adicionais (CLI)", outros_custos)

        if nota.nome_fornecedor:
            print(Fore.WHITE + f"   Fornecedor: {nota.nome_fornecedor} ({formatar_documento(nota.documento_fornecedor)})")

        resultado = sessao.rateio
        print_rateio(sessao, resultado)
        exporter.gerar_excel(resultado, numero_nota=sessao.numero_nota, fornecedor=nota.nome_fornecedor)

        if registrar:
            try:
                repo.registrar_nota_entrada(sessao.montar_payload())
            except EntradaNFError as e:
                print(Fore.RED + f"   ❌ Erro ao registrar nota de entrada: {e}")
                falhas.append(xml_file)
                continue

        processadas += 1
        total_itens += len(resultado.itens)
        custo_total += resultado.custo_total

    print_summary(processadas, total_itens, custo_total, falhas)
    return processadas


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="entradanf",
        description="Importa NF-e de compra e calcula o rateio de frete, impostos e outros custos.",
    )
    parser.add_argument("--input", default=config.INPUT_DIR, help="pasta com os XMLs (default: %(default)s)")
    parser.add_argument("--output", default=config.OUTPUT_DIR, help="pasta dos relatórios (default: %(default)s)")
    parser.add_argument("--db", default=config.DB_PATH, help="arquivo JSON do estoque (default: %(default)s)")
    parser.add_argument("--registrar", action="store_true", help="grava as notas no estoque")
    parser.add_argument("--outros-custos", type=parse_valor_brl, default=Decimal("0"),
                        help="custo adicional por nota, ex: 12,50")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    init(autoreset=True)
    config.configure_logging()

    args = build_arg_parser().parse_args(argv)
    process_pipeline(
        input_dir=args.input,
        output_dir=args.output,
        db_path=args.db,
        registrar=args.registrar,
        outros_custos=args.outros_custos,
    )


# =============================================================================
# PONTO DE ENTRADA DO PROGRAMA
# =============================================================================

if __name__ == "__main__":
    main()
