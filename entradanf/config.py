"""
Configuração do Entrada NF.

Valores vêm de variáveis de ambiente (ou de um arquivo .env na raiz),
com defaults que funcionam rodando da raiz do projeto.
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv()


# Diretório onde o usuário coloca os XMLs de NF-e
INPUT_DIR = os.getenv("ENTRADANF_INPUT_DIR", "input_xmls")

# Diretório dos relatórios de rateio
OUTPUT_DIR = os.getenv("ENTRADANF_OUTPUT_DIR", "output_reports")

# Arquivo JSON do estoque (produtos, fornecedores, notas, contas a pagar)
DB_PATH = os.getenv("ENTRADANF_DB_PATH", os.path.join("data", "estoque.json"))

# Dias entre a entrada da mercadoria e o vencimento da conta a pagar
PRAZO_PAGAMENTO_DIAS = int(os.getenv("ENTRADANF_PRAZO_PAGAMENTO_DIAS", "30"))

# Nível de log dos módulos internos (DEBUG mostra itens ignorados no XML)
LOG_LEVEL = os.getenv("ENTRADANF_LOG_LEVEL", "WARNING").upper()

# Senha da interface web (Streamlit secrets tem prioridade)
APP_PASSWORD = os.getenv("APP_PASSWORD", "admin123")


def configure_logging() -> None:
    """Configura o logger raiz do pacote para as interfaces (CLI e web)."""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
