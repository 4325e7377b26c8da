"""
================================================================================
TESTES - Tela Streamlit de entrada de mercadorias
================================================================================

Execute com: pytest tests/ -v
"""

import os
import sys
from decimal import Decimal

import pytest
from streamlit.testing.v1 import AppTest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

APP_PATH = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'app.py'))

NFE = """<NFe><infNFe Id="NFe42">
  <ide><nNF>42</nNF></ide>
  <det><prod><xProd>PARAFUSO</xProd><qCom>2</qCom><vUnCom>10.00</vUnCom></prod></det>
  <det><prod><xProd>BUCHA</xProd><qCom>1</qCom><vUnCom>30.00</vUnCom></prod></det>
  <total><ICMSTot><vFrete>5.00</vFrete><vICMS>3.00</vICMS></ICMSTot></total>
</infNFe></NFe>"""


class TestCamposDeCusto:

    @pytest.fixture(autouse=True)
    def _app(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        self.at = AppTest.from_file(APP_PATH, default_timeout=30)
        self.at.session_state["password_correct"] = True
        self.at.run()
        self.sessao = self.at.session_state["sessao"]

    def test_importacao_preserva_frete_e_imposto(self):
        """Frete e percentual importados sobrevivem à próxima execução da tela."""
        self.sessao.importar_xml(NFE)
        self.at.run()

        assert self.sessao.valor_frete == Decimal("5.00")
        assert self.sessao.percentual_imposto == Decimal("6.00")
        assert self.at.text_input(key="frete").value == "5,00"
        assert self.at.text_input(key="imposto").value == "6,00"

    def test_edicao_do_frete_atualiza_sessao(self):
        self.at.text_input(key="frete").set_value("12,50").run()

        assert self.sessao.valor_frete == Decimal("12.50")
        assert self.at.text_input(key="frete").value == "12,50"

    def test_valor_invalido_mantem_sessao(self):
        self.sessao.definir_frete("7")
        self.at.run()

        self.at.text_input(key="frete").set_value("-3").run()

        assert self.sessao.valor_frete == Decimal("7")
        assert self.at.text_input(key="frete").value == "7,00"
        assert len(self.at.error) == 1

    def test_edicao_do_percentual(self):
        self.at.text_input(key="imposto").set_value("15").run()
        assert self.sessao.percentual_imposto == Decimal("15")


# =============================================================================
# EXECUÇÃO DIRETA
# =============================================================================

if __name__ == "__main__":
    pytest.main([__file__, "-v"])
