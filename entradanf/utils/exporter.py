"""
================================================================================
MÓDULO: exporter.py - Relatório de rateio da nota de entrada
================================================================================

Gera planilhas Excel (.xlsx) e CSV com o resultado do rateio de uma nota de
entrada: um registro por item, com custo bruto da NF, proporção e custo
unitário rateado, mais um resumo com frete, impostos e total.

ESTRUTURA DO RELATÓRIO:
-----------------------
    | Nº Nota | Fornecedor | Produto | Qtd | Custo NF | Subtotal | % | Custo Rateado | Custo Total |
    |---------|------------|---------|-----|----------|----------|---|---------------|-------------|
    | 119249  | DIST. SUL  | PARAFUSO| 2   | 10.00    | 20.00    |40 | 12.10         | 24.20       |

NOMENCLATURA DOS ARQUIVOS:
--------------------------
    Entrada_Rateio_20251229_143052.xlsx
                   │       │
                   │       └── Hora (HHMMSS)
                   └────────── Data (YYYYMMDD)

Os valores saem como número (não texto) para permitir soma no Excel.

DEPENDÊNCIAS:
-------------
    - pandas: Manipulação de dados e exportação
    - openpyxl: Engine .xlsx e formatação do cabeçalho

USO:
----
    from entradanf.utils.exporter import ReportGenerator

    exporter = ReportGenerator(output_folder="output_reports")
    exporter.gerar_excel(sessao.rateio, numero_nota="119249", fornecedor="DIST. SUL")
================================================================================
"""

# =============================================================================
# IMPORTS
# =============================================================================

import os
from datetime import datetime
from io import BytesIO
from typing import Any, Dict, List, Optional

import pandas as pd
from colorama import Fore
from openpyxl.styles import Alignment, Font, PatternFill

from entradanf.core.models import ResultadoRateio


# =============================================================================
# CONSTANTES
# =============================================================================

DEFAULT_OUTPUT_FOLDER = "output_reports"

# Nome interno -> nome exibido
COLUMN_MAPPING = {
    "numero_nota": "Nº Nota",
    "fornecedor": "Fornecedor",
    "produto": "Produto",
    "sku": "SKU",
    "ncm": "NCM",
    "quantidade": "Quantidade",
    "custo_unitario": "Custo Unit. NF (R$)",
    "subtotal": "Subtotal (R$)",
    "proporcao": "Proporção (%)",
    "custo_rateado": "Custo Rateado (R$)",
    "custo_total": "Custo Total (R$)",
}

COLUMN_ORDER = list(COLUMN_MAPPING)

SHEET_ITENS = "Rateio"
SHEET_RESUMO = "Resumo"


# =============================================================================
# CLASSE PRINCIPAL
# =============================================================================

class ReportGenerator:
    """
    Gerador de relatórios de rateio.

    Attributes:
        output_folder (str): Diretório onde os arquivos são salvos.

    Note:
        - O diretório é criado automaticamente
        - Nomes com timestamp, então nada é sobrescrito
    """

    def __init__(self, output_folder: str = DEFAULT_OUTPUT_FOLDER):
        self.output_folder = output_folder

        if not os.path.exists(output_folder):
            os.makedirs(output_folder, exist_ok=True)
            print(Fore.BLUE + f"📁 Diretório criado: {output_folder}")

    def _generate_filename(self, extensao: str = "xlsx") -> str:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return f"Entrada_Rateio_{timestamp}.{extensao}"

    @staticmethod
    def linhas_rateio(resultado: ResultadoRateio, numero_nota: str = "",
                      fornecedor: str = "") -> List[Dict[str, Any]]:
        """
        Converte o rateio em registros planos (um por item).

        Decimal vira float só aqui, na saída para planilha.
        """
        linhas = []
        for item in resultado.itens:
            linhas.append({
                "numero_nota": numero_nota,
                "fornecedor": fornecedor,
                "produto": item.nome,
                "sku": getattr(item.item, "sku", None) or "",
                "ncm": getattr(item.item, "ncm", None) or "",
                "quantidade": float(item.quantidade),
                "custo_unitario": float(item.custo_unitario),
                "subtotal": float(item.subtotal),
                "proporcao": round(float(item.proporcao) * 100, 2),
                "custo_rateado": float(item.custo_rateado),
                "custo_total": float(item.custo_total),
            })
        return linhas

    def _prepare_dataframe(self, linhas: List[Dict[str, Any]]) -> pd.DataFrame:
        """Garante todas as colunas, na ordem certa, com nomes amigáveis."""
        df = pd.DataFrame(linhas)

        for col in COLUMN_ORDER:
            if col not in df.columns:
                df[col] = ""

        df_ordered = df[COLUMN_ORDER].copy()
        df_ordered.columns = [COLUMN_MAPPING[col] for col in COLUMN_ORDER]
        return df_ordered

    @staticmethod
    def _resumo(resultado: ResultadoRateio) -> List[tuple]:
        return [
            ("Subtotal dos itens", float(resultado.subtotal)),
            ("Frete", float(resultado.valor_frete)),
            ("Outros custos", float(resultado.outros_custos)),
            ("Impostos (%)", float(resultado.percentual_imposto)),
            ("Impostos (R$)", round(float(resultado.valor_impostos), 2)),
            ("Custo total", round(float(resultado.custo_total), 2)),
        ]

    def _escrever_excel(self, destino: Any, resultado: ResultadoRateio,
                        numero_nota: str, fornecedor: str) -> None:
        df = self._prepare_dataframe(self.linhas_rateio(resultado, numero_nota, fornecedor))

        with pd.ExcelWriter(destino, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name=SHEET_ITENS)

            ws = writer.sheets[SHEET_ITENS]
            header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
            for cell in ws[1]:
                cell.fill = header_fill
                cell.font = Font(bold=True, color="FFFFFF")
                cell.alignment = Alignment(horizontal="center", wrap_text=True)
            ws.column_dimensions["C"].width = 40  # Produto

            ws_resumo = writer.book.create_sheet(SHEET_RESUMO)
            ws_resumo.cell(row=1, column=1, value=f"Nota {numero_nota or '-'} | {fornecedor or '-'}")
            ws_resumo.cell(row=1, column=1).font = Font(bold=True, size=14)
            for idx, (rotulo, valor) in enumerate(self._resumo(resultado), start=3):
                ws_resumo.cell(row=idx, column=1, value=rotulo)
                ws_resumo.cell(row=idx, column=2, value=valor)
            ws_resumo.column_dimensions["A"].width = 25

    def gerar_excel(self, resultado: ResultadoRateio, numero_nota: str = "",
                    fornecedor: str = "") -> Optional[str]:
        """
        Gera o relatório Excel do rateio.

        Returns:
            Optional[str]: Caminho do arquivo, ou None se não há itens ou se a
            gravação falhou (mensagem já exibida no terminal).
        """
        if not resultado.itens:
            print(Fore.YELLOW + "⚠️  Nenhum item para exportar. Relatório não gerado.")
            return None

        filepath = os.path.join(self.output_folder, self._generate_filename("xlsx"))

        try:
            self._escrever_excel(filepath, resultado, numero_nota, fornecedor)
        except PermissionError:
            print(Fore.RED + f"❌ Erro: Arquivo {filepath} está aberto em outro programa.")
            print(Fore.YELLOW + "   Feche o Excel e tente novamente.")
            return None

        print(Fore.GREEN + f"\n📊 Relatório Excel gerado com sucesso!")
        print(Fore.WHITE + f"   📁 Arquivo: {filepath}")
        print(Fore.WHITE + f"   📋 Registros: {len(resultado.itens)} itens")
        print(Fore.WHITE + f"   💰 Total: R$ {float(resultado.custo_total):.2f}")
        return filepath

    def gerar_excel_bytes(self, resultado: ResultadoRateio, numero_nota: str = "",
                          fornecedor: str = "") -> Optional[bytes]:
        """Mesmo conteúdo do gerar_excel, em memória (botão de download)."""
        if not resultado.itens:
            return None

        output = BytesIO()
        self._escrever_excel(output, resultado, numero_nota, fornecedor)
        return output.getvalue()

    def gerar_csv(self, resultado: ResultadoRateio, numero_nota: str = "",
                  fornecedor: str = "") -> Optional[str]:
        """
        Relatório em CSV.

        sep=';' e encoding 'utf-8-sig' para o Excel brasileiro abrir com acentos.
        """
        if not resultado.itens:
            print(Fore.YELLOW + "⚠️  Nenhum item para exportar.")
            return None

        df = self._prepare_dataframe(self.linhas_rateio(resultado, numero_nota, fornecedor))
        filepath = os.path.join(self.output_folder, self._generate_filename("csv"))

        try:
            df.to_csv(filepath, index=False, sep=";", encoding="utf-8-sig")
        except PermissionError:
            print(Fore.RED + f"❌ Erro: Arquivo {filepath} está aberto em outro programa.")
            return None

        print(Fore.GREEN + f"📊 Relatório CSV gerado: {filepath}")
        return filepath
