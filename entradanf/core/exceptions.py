"""
Exceções do Entrada NF.

Toda falha de negócio herda de EntradaNFError, e as bordas do sistema
(CLI e interface Streamlit) capturam e exibem uma única mensagem ao usuário.
"""


class EntradaNFError(Exception):
    """Erro base do sistema de entrada de mercadorias."""


class XMLInvalidoError(EntradaNFError):
    """O conteúdo recebido não pôde ser interpretado como XML."""


class ImportacaoXMLError(EntradaNFError):
    """Falha genérica ao importar uma NF-e para a sessão de entrada."""

    MENSAGEM = "Erro ao processar o arquivo XML. Verifique o formato."

    def __init__(self, mensagem: str = MENSAGEM):
        super().__init__(mensagem)


class ItemInvalidoError(EntradaNFError):
    """Item recusado antes de entrar na sessão (quantidade, custo ou nome)."""


class ProdutoDuplicadoError(ItemInvalidoError):
    """Produto do catálogo já adicionado à nota de entrada."""


class EntradaVaziaError(EntradaNFError):
    """A nota de entrada não possui itens."""


class ValorInvalidoError(EntradaNFError, ValueError):
    """Texto que não representa um valor monetário/numérico."""


class NotaNaoEncontradaError(EntradaNFError):
    """Nota de entrada inexistente no repositório."""
