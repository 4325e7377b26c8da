"""
================================================================================
MÓDULO: parser.py - Extrator de Dados de NF-e (Nota Fiscal Eletrônica)
================================================================================

Este módulo lê o XML de uma Nota Fiscal Eletrônica (NF-e) de compra e devolve
uma estrutura normalizada (NotaFiscalXML) pronta para alimentar a tela de
entrada de mercadorias.

CONTEXTO TÉCNICO:
-----------------
Cada sistema emissor monta o XML de um jeito. Os mais comuns:

    <nfeProc xmlns="http://www.portalfiscal.inf.br/nfe">   # namespace padrão
    <nfe:nfeProc xmlns:nfe="...">                          # prefixo nfe:
    <ns:NFe xmlns:ns="...">                                # prefixo ns:
    <NFe>                                                  # sem namespace
    <NFe><nfe:nNF>                                         # prefixo sem xmlns declarado

Para não depender de nenhum deles, toda busca de campo tenta, em ordem:

    1. o nome exato do elemento (sem namespace)
    2. o nome com prefixo nfe:  (namespace do portal fiscal)
    3. o nome com prefixo ns:   (idem)
    4. o nome em qualquer namespace ({*}tag)

e devolve o primeiro texto não vazio encontrado (já com strip), ou "".

ESTRUTURA USADA:
----------------
    <infNFe Id="NFe3525...">            # chave de acesso (atributo Id)
        <ide><nNF/><dhEmi/></ide>       # número e data
        <emit><xNome/><CNPJ/></emit>    # fornecedor
        <det nItem="1">
            <prod>
                <cProd/> <xProd/> <NCM/>
                <qCom/> <vUnCom/>       # comercial (preferido)
                <qTrib/> <vUnTrib/>     # tributável (fallback)
            </prod>
        </det>
        <total><ICMSTot>
            <vFrete/> <vICMS/> <vST/> <vIPI/> <vPIS/> <vCOFINS/> <vOutro/>
        </ICMSTot></total>
    </infNFe>
    <protNFe><infProt><chNFe/></infProt></protNFe>   # chave (fallback)

REGRAS:
-------
    - Item só entra se tiver nome E quantidade > 0
    - Custo unitário inválido vira zero
    - Frete = ICMSTot/vFrete (zero se ausente)
    - Total de impostos = vICMS + vST + vIPI + vPIS + vCOFINS + vOutro
      (campo inválido soma zero)
    - Campo ausente nunca é erro: vira "" ou zero
    - Prefixo sem xmlns declarado não é erro: o XML é relido sem namespaces
    - Conteúdo que não é XML bem formado levanta XMLInvalidoError

DEPENDÊNCIAS:
-------------
    - xml.etree.ElementTree: Biblioteca padrão Python para parsing XML
    - xml.parsers.expat: Releitura sem namespaces (mesmo motor do ElementTree)

USO:
----
    from entradanf.core.parser import NFeParser

    parser = NFeParser()
    nota = parser.parse("nota_fiscal.xml")

    print(f"NF {nota.numero_nota} - {nota.nome_fornecedor}")
    for item in nota.itens:
        print(f"{item.nome}: {item.quantidade} x R$ {item.custo_unitario}")
================================================================================
"""

# =============================================================================
# IMPORTS
# =============================================================================

import logging
import xml.etree.ElementTree as ET  # Parser XML da biblioteca padrão Python
from xml.parsers import expat
from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence, Union

from .exceptions import XMLInvalidoError
from .models import ItemNota, NotaFiscalXML, ZERO, para_decimal


logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTES
# =============================================================================

# Namespace oficial dos XMLs de NF-e
NFE_URI = "http://www.portalfiscal.inf.br/nfe"

# Prefixos tentados depois do nome exato, na ordem
PREFIXOS_NAMESPACE = ("nfe", "ns")

# Todos os prefixos apontam para o namespace do portal fiscal
NFE_NAMESPACE = {prefixo: NFE_URI for prefixo in PREFIXOS_NAMESPACE}

# Campos de ICMSTot somados no total de impostos
CAMPOS_IMPOSTO = ("vICMS", "vST", "vIPI", "vPIS", "vCOFINS", "vOutro")


# =============================================================================
# CLASSE PRINCIPAL
# =============================================================================

class NFeParser:
    """
    Parser de arquivos XML de Nota Fiscal Eletrônica (NF-e) de compra.

    O parser lida automaticamente com:
        - Namespace padrão, prefixos nfe:/ns: ou nenhum namespace
        - Campos opcionais (não quebra se faltar algo)
        - Conversão de tipos (string → Decimal)
        - Soma dos impostos do bloco ICMSTot

    Attributes:
        ns (dict): Prefixos conhecidos → namespace do portal fiscal.

    Example:
        >>> parser = NFeParser()
        >>> nota = parser.parse_texto(xml_text)
        >>> nota.numero_nota
        '119249'
        >>> [item.nome for item in nota.itens]
        ['PARAFUSO 6MM', 'BUCHA 6MM']
        >>> nota.total_impostos
        Decimal('150.00')
    """

    def __init__(self):
        self.ns = NFE_NAMESPACE

    # -------------------------------------------------------------------------
    # Busca tolerante a namespace
    # -------------------------------------------------------------------------

    def _variantes(self, tag: str) -> List[str]:
        """
        Caminhos tentados para um nome de elemento, na ordem de preferência.

        Example:
            >>> NFeParser()._variantes("nNF")
            ['.//nNF', './/nfe:nNF', './/ns:nNF', './/{*}nNF']
        """
        caminhos = [f".//{tag}"]
        caminhos.extend(f".//{prefixo}:{tag}" for prefixo in PREFIXOS_NAMESPACE)
        caminhos.append(f".//{{*}}{tag}")
        return caminhos

    def _find_element(self, parent: ET.Element, tag: str) -> Optional[ET.Element]:
        """Primeiro descendente com o nome informado, em qualquer variante."""
        for caminho in self._variantes(tag):
            found = parent.find(caminho, self.ns)
            if found is not None:
                return found
        return None

    def _find_all(self, parent: ET.Element, tag: str) -> List[ET.Element]:
        """Todos os descendentes com o nome, usando a primeira variante que encontrar algo."""
        for caminho in self._variantes(tag):
            found = parent.findall(caminho, self.ns)
            if found:
                return found
        return []

    def _find_text(self, parent: Optional[ET.Element], tags: Sequence[str]) -> str:
        """
        Busca o texto de um campo testando cada nome candidato.

        Para cada nome em `tags` (ex: ["qCom", "qTrib"]) tenta o nome exato e
        depois as variantes com prefixo. Devolve o primeiro texto não vazio,
        sem espaços nas pontas. Se nada casar, devolve "".

        Args:
            parent (ET.Element | None): Elemento onde buscar.
            tags (Sequence[str]): Nomes candidatos, do preferido ao fallback.

        Returns:
            str: Texto encontrado ou "".

        Example:
            >>> self._find_text(prod, ["vUnCom", "vUnTrib"])
            '12.50'
        """
        if parent is None:
            return ""

        for tag in tags:
            for caminho in self._variantes(tag):
                found = parent.find(caminho, self.ns)
                if found is None:
                    continue
                texto = "".join(found.itertext()).strip()
                if texto:
                    return texto
        return ""

    def _find_decimal(self, parent: Optional[ET.Element], tags: Sequence[str]) -> Decimal:
        """Texto do campo convertido para Decimal; qualquer falha vira zero."""
        return para_decimal(self._find_text(parent, tags), default=ZERO)

    # -------------------------------------------------------------------------
    # Blocos da nota
    # -------------------------------------------------------------------------

    def _extract_chave_acesso(self, root: ET.Element) -> str:
        """
        Chave de acesso de 44 dígitos.

        Preferência: atributo Id do infNFe ("NFe" + 44 dígitos, prefixo
        removido). Fallback: texto do elemento chNFe do protocolo.
        """
        chave = ""

        inf_nfe = root if self._nome_local(root.tag) == "infNFe" else self._find_element(root, "infNFe")
        if inf_nfe is not None:
            nfe_id = inf_nfe.get("Id", "")
            chave = nfe_id[3:] if nfe_id.startswith("NFe") else nfe_id

        if not chave:
            chave = self._find_text(root, ["chNFe"])

        return chave

    def _extract_data(self, ide: Optional[ET.Element]) -> Optional[date]:
        """Data de emissão (dhEmi na NF-e 4.0, dEmi nas versões antigas)."""
        data_str = self._find_text(ide, ["dhEmi", "dEmi"])
        if not data_str:
            return None

        try:
            # 2025-12-29T18:03:19-03:00 -> 2025-12-29
            return date.fromisoformat(data_str[:10])
        except ValueError:
            logger.debug("Data de emissão inválida no XML: %r", data_str)
            return None

    def _extract_item(self, det_element: ET.Element) -> Optional[ItemNota]:
        """
        Extrai um item (<det>) da nota.

        Returns:
            ItemNota | None: None quando não há <prod>, nome ou quantidade > 0.
        """
        prod = self._find_element(det_element, "prod")
        if prod is None:
            return None

        nome = self._find_text(prod, ["xProd"])
        quantidade = self._find_decimal(prod, ["qCom", "qTrib"])

        if not nome or quantidade <= 0:
            logger.debug("Item %s ignorado (nome=%r, quantidade=%s)",
                         det_element.get("nItem", "?"), nome, quantidade)
            return None

        return ItemNota(
            nome=nome,
            quantidade=quantidade,
            custo_unitario=self._find_decimal(prod, ["vUnCom", "vUnTrib"]),
            ncm=self._find_text(prod, ["NCM"]) or None,
            sku=self._find_text(prod, ["cProd", "cEAN"]) or None,
        )

    def _extract_total_impostos(self, icms_tot: Optional[ET.Element]) -> Decimal:
        if icms_tot is None:
            return ZERO
        return sum((self._find_decimal(icms_tot, [campo]) for campo in CAMPOS_IMPOSTO), ZERO)

    # -------------------------------------------------------------------------
    # Leitura do documento
    # -------------------------------------------------------------------------

    def _ler_xml(self, xml_text: Union[str, bytes]) -> ET.Element:
        """
        Monta a árvore do documento.

        Alguns emissores usam prefixos (<nfe:nNF>) sem declarar o xmlns.
        O ElementTree recusa esses documentos; nesse caso o XML é lido de
        novo sem processamento de namespace, e só falha de verdade se não
        for bem formado.

        Raises:
            XMLInvalidoError: Conteúdo vazio ou que não é XML bem formado.
        """
        try:
            return ET.fromstring(xml_text)
        except ET.ParseError as e:
            erro_namespace = e

        try:
            root = self._ler_sem_namespace(xml_text)
        except expat.ExpatError as e:
            raise XMLInvalidoError(f"XML inválido: {e}") from e

        logger.debug("XML lido sem namespaces (%s)", erro_namespace)
        return root

    def _ler_sem_namespace(self, xml_text: Union[str, bytes]) -> ET.Element:
        """
        Lê o XML com o expat em modo sem namespace.

        Os nomes chegam qualificados ("nfe:nNF") e são convertidos para a
        forma do ElementTree: prefixos conhecidos viram o namespace do portal
        fiscal ({http://www.portalfiscal.inf.br/nfe}nNF), os demais viram
        {prefixo}nome. Assim as mesmas buscas valem para os dois casos.
        """
        builder = ET.TreeBuilder()

        def inicio(tag, atributos):
            builder.start(self._nome_qualificado(tag), atributos)

        def fim(tag):
            builder.end(self._nome_qualificado(tag))

        parser = expat.ParserCreate()
        parser.buffer_text = True
        parser.StartElementHandler = inicio
        parser.EndElementHandler = fim
        parser.CharacterDataHandler = builder.data
        parser.Parse(xml_text, True)
        return builder.close()

    def _nome_qualificado(self, tag: str) -> str:
        """'nfe:nNF' -> '{http://www.portalfiscal.inf.br/nfe}nNF'; 'x:nNF' -> '{x}nNF'."""
        if ":" not in tag:
            return tag
        prefixo, local = tag.split(":", 1)
        return f"{{{self.ns.get(prefixo, prefixo)}}}{local}"

    # -------------------------------------------------------------------------
    # API pública
    # -------------------------------------------------------------------------

    def parse_texto(self, xml_text: Union[str, bytes]) -> NotaFiscalXML:
        """
        Interpreta o conteúdo de um XML de NF-e.

        Args:
            xml_text (str | bytes): Conteúdo do arquivo. Bytes respeitam o
                encoding declarado no próprio XML.

        Returns:
            NotaFiscalXML: Cabeçalho, itens válidos, frete e total de impostos.

        Raises:
            XMLInvalidoError: Conteúdo vazio ou que não é XML bem formado.
        """
        root = self._ler_xml(xml_text)

        # ---------------------------------------------------------------------
        # Cabeçalho
        # ---------------------------------------------------------------------
        ide = self._find_element(root, "ide")
        emit = self._find_element(root, "emit")

        # ---------------------------------------------------------------------
        # Itens
        # ---------------------------------------------------------------------
        itens = []
        for det in self._find_all(root, "det"):
            item = self._extract_item(det)
            if item is not None:
                itens.append(item)

        # ---------------------------------------------------------------------
        # Totais
        # ---------------------------------------------------------------------
        icms_tot = self._find_element(root, "ICMSTot")

        nota = NotaFiscalXML(
            numero_nota=self._find_text(ide, ["nNF"]),
            chave_acesso=self._extract_chave_acesso(root),
            nome_fornecedor=self._find_text(emit, ["xNome", "xFant"]),
            documento_fornecedor=self._find_text(emit, ["CNPJ"]) or self._find_text(emit, ["CPF"]),
            data_entrada=self._extract_data(ide),
            itens=tuple(itens),
            valor_frete=self._find_decimal(icms_tot, ["vFrete"]),
            total_impostos=self._extract_total_impostos(icms_tot),
        )

        logger.debug("NF-e %s interpretada: %d item(ns)", nota.numero_nota or "(sem número)", len(itens))
        return nota

    def parse(self, xml_path: str) -> NotaFiscalXML:
        """
        Lê um arquivo XML de NF-e do disco.

        Raises:
            XMLInvalidoError: Arquivo não é XML.
            OSError: Arquivo inexistente ou sem permissão de leitura.
        """
        with open(xml_path, "rb") as f:
            return self.parse_texto(f.read())

    @staticmethod
    def _nome_local(tag: str) -> str:
        """'{http://...}infNFe' -> 'infNFe'."""
        return tag.rsplit("}", 1)[-1]


# =============================================================================
# EXEMPLO DE USO (para testes)
# =============================================================================

if __name__ == "__main__":
    import sys

    if len(sys.argv) < 2:
        print("Uso: python -m entradanf.core.parser <arquivo.xml>")
        sys.exit(1)

    nota = NFeParser().parse(sys.argv[1])

    print(f"\n📋 DADOS DA NOTA:")
    print(f"   Número: {nota.numero_nota} | Chave: {nota.chave_acesso}")
    print(f"   Data: {nota.data_entrada}")
    print(f"   Fornecedor: {nota.nome_fornecedor} ({nota.documento_fornecedor})")
    print(f"   Frete: R$ {nota.valor_frete} | Impostos: R$ {nota.total_impostos}")
    print(f"\n📦 Total de itens: {len(nota.itens)}\n")

    for item in nota.itens:
        print(f"  {item.nome}  NCM {item.ncm or '-'}  {item.quantidade} x R$ {item.custo_unitario}")
