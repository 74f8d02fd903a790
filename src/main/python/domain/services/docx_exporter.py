"""
DOCX Exporter Service
Generates the "Relatório de Cenário da Demanda" in .docx format from a validated synthesis.
"""

import logging
import time
from io import BytesIO
from typing import List, Tuple

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH, WD_BREAK
from docx.shared import Cm, Pt

from domain.usecase.cenario.types import SynthesisData, is_blank

logger = logging.getLogger(__name__)

FONT_NAME = 'Times New Roman'
FONT_SIZE = Pt(12)
FOOTER_TEXT = "Framework CRIVO | Relatório de Cenário"

SECTION_TITLES = [
    "1. INTRODUÇÃO",
    "2. IDENTIFICAÇÃO",
    "3. NECESSIDADE DA CONTRATAÇÃO",
    "4. JUSTIFICATIVA",
    "5. HIPÓTESES DE SOLUÇÃO",
    "6. REQUISITOS PRELIMINARES",
    "7. PLANEJAMENTO",
    "8. RISCOS",
    "9. CONCLUSÕES",
]

INTRODUCTION_TEXT = (
    "Este relatório apresenta o cenário completo da demanda de contratação, elaborado conforme "
    "metodologia Framework CRIVO, em conformidade com Lei nº 14.133/2021."
)
CONCLUSION_TEXT = (
    "Com base nas informações coletadas, evidencia-se necessidade da contratação e alinhamento "
    "com objetivos estratégicos do órgão."
)


def report_filename(project_id) -> str:
    """Relatorio_Cenario_{projectId}_{epochMillis}.docx"""
    return f"Relatorio_Cenario_{project_id}_{int(time.time() * 1000)}.docx"


class CenarioReportExporter:
    """
    Service to export a SynthesisData to .docx format.
    Layout: cover page, table of contents and 9 numbered sections.
    """

    def export(self, synthesis: SynthesisData, title: str) -> BytesIO:
        """
        Export the scenario report.

        Args:
            synthesis: Validated synthesis (every leaf already defaulted)
            title: Demanda title shown on the cover page

        Returns:
            BytesIO: Buffer containing the generated .docx file
        """
        if not isinstance(synthesis, SynthesisData):
            raise TypeError("synthesis deve ser um SynthesisData validado")

        doc = Document()
        self._configure_document(doc, synthesis)
        self._add_cover_page(doc, synthesis, title)
        self._add_page_break(doc)
        self._add_table_of_contents(doc)
        self._add_page_break(doc)
        self._add_content(doc, synthesis)

        buffer = BytesIO()
        doc.save(buffer)
        buffer.seek(0)
        logger.info(f"[DOCX] Relatório de cenário gerado: {title}")
        return buffer

    def _configure_document(self, doc: Document, synthesis: SynthesisData):
        normal = doc.styles['Normal']
        normal.font.name = FONT_NAME
        normal.font.size = FONT_SIZE

        for section in doc.sections:
            section.top_margin = Cm(2)
            section.right_margin = Cm(2)
            section.bottom_margin = Cm(2)
            section.left_margin = Cm(3)

            header = section.header.paragraphs[0]
            header.text = synthesis.identificacao.orgao_nome
            header.alignment = WD_ALIGN_PARAGRAPH.RIGHT
            self._style_runs(header, size=Pt(10))

            footer = section.footer.paragraphs[0]
            footer.text = FOOTER_TEXT
            footer.alignment = WD_ALIGN_PARAGRAPH.CENTER
            self._style_runs(footer, size=Pt(10))

    def _add_cover_page(self, doc: Document, synthesis: SynthesisData, title: str):
        ident = synthesis.identificacao

        self._add_centered(doc, ident.orgao_nome.upper(), size=Pt(16), bold=True)
        self._add_centered(doc, "", space_before=Pt(40))
        self._add_centered(doc, "RELATÓRIO DE CENÁRIO DA DEMANDA", size=Pt(14), bold=True)
        self._add_centered(doc, "Framework CRIVO - Lei nº 14.133/2021", italic=True)
        self._add_centered(doc, "", space_before=Pt(60))
        self._add_centered(doc, title, size=Pt(13), bold=True)
        self._add_centered(doc, "", space_before=Pt(100))

        for line in (
            f"Elaborado por: {ident.responsavel}",
            f"Cargo: {ident.cargo}",
            f"Data: {ident.data}",
        ):
            p = doc.add_paragraph(line)
            p.alignment = WD_ALIGN_PARAGRAPH.RIGHT
            self._style_runs(p)

    def _add_table_of_contents(self, doc: Document):
        heading = doc.add_heading("SUMÁRIO", level=1)
        heading.alignment = WD_ALIGN_PARAGRAPH.CENTER
        for entry in SECTION_TITLES:
            self._add_paragraph(doc, entry, justify=False)

    def _add_content(self, doc: Document, data: SynthesisData):
        # 1. Introdução
        self._add_section(doc, SECTION_TITLES[0])
        self._add_paragraph(doc, INTRODUCTION_TEXT)

        # 2. Identificação
        self._add_section(doc, SECTION_TITLES[1])
        self._add_key_value_table(doc, self._identification_rows(data))

        # 3. Necessidade
        self._add_section(doc, SECTION_TITLES[2])
        self._add_paragraph(doc, data.necessidade.descricao)
        self._add_labeled(doc, "Natureza da demanda", data.necessidade.natureza_demanda)
        self._add_labeled(doc, "Categoria", data.necessidade.categoria_demanda)

        # 4. Justificativa
        just = data.justificativa
        self._add_section(doc, SECTION_TITLES[3])
        self._add_subsection(doc, "4.1. Problema Identificado", just.problema_detalhado)
        self._add_subsection(doc, "4.2. Situação Atual", just.situacao_atual)
        self._add_subsection(doc, "4.3. Impacto", just.impacto)
        self._add_subsection(doc, "4.4. Beneficiários", just.beneficiarios)
        self._add_subsection(doc, "4.5. Resultado Esperado", just.resultado_esperado)
        self._add_subsection(doc, "4.6. Alinhamento Estratégico", just.alinhamento_estrategico)

        # 5. Hipóteses de solução
        hip = data.hipoteses_solucao
        self._add_section(doc, SECTION_TITLES[4])
        self._add_subsection(doc, "5.1. Hipótese Principal", hip.principal)
        self._add_subsection(doc, "5.2. Alternativas Consideradas", hip.alternativas)
        self._add_subsection(doc, "5.3. Experiências Anteriores", hip.experiencias_anteriores)
        self._add_subsection(doc, "5.4. Justificativa da Escolha", hip.justificativa_escolha)

        # 6. Requisitos preliminares
        req = data.requisitos
        self._add_section(doc, SECTION_TITLES[5])
        self._add_labeled(doc, "Quantitativos", req.quantitativos)
        self._add_labeled(doc, "Especificações técnicas", req.especificacoes_tecnicas)
        self._add_labeled(doc, "Localização", req.localizacao)
        self._add_labeled(doc, "Infraestrutura", req.infraestrutura)

        # 7. Planejamento
        plan = data.planejamento
        self._add_section(doc, SECTION_TITLES[6])
        self._add_labeled(doc, "Prazo", plan.prazo)
        self._add_labeled(doc, "Orçamento", plan.orcamento)
        self._add_labeled(doc, "Fonte de recurso", plan.fonte_recurso)
        self._add_labeled(doc, "Gestor/Fiscal", plan.gestor_fiscal)
        self._add_labeled(doc, "Capacitação", plan.capacitacao)

        # 8. Riscos
        riscos = data.riscos
        self._add_section(doc, SECTION_TITLES[7])
        self._add_labeled(doc, "Riscos de não contratar", riscos.nao_contratar)
        self._add_labeled(doc, "Riscos da contratação", riscos.da_contratacao)
        self._add_labeled(doc, "Legislação aplicável", riscos.legislacao)

        # 9. Conclusões
        self._add_section(doc, SECTION_TITLES[8])
        self._add_paragraph(doc, CONCLUSION_TEXT)

    def _identification_rows(self, data: SynthesisData) -> List[Tuple[str, str]]:
        ident = data.identificacao
        rows = [
            ("Órgão/Entidade:", ident.orgao_nome),
            ("CNPJ:", ident.orgao_cnpj),
            ("Órgão Demandante:", ident.orgao_demandante),
        ]
        # UASG só aparece quando informada
        if not is_blank(ident.uasg):
            rows.append(("UASG:", ident.uasg))
        rows.extend([
            ("Endereço:", ident.endereco),
            ("Responsável:", ident.responsavel),
            ("Cargo:", ident.cargo),
            ("E-mail:", ident.email),
            ("Telefone:", ident.telefone),
            ("Data:", ident.data),
        ])
        return rows

    def _add_key_value_table(self, doc: Document, rows: List[Tuple[str, str]]):
        table = doc.add_table(rows=0, cols=2)
        table.style = 'Table Grid'
        for label, value in rows:
            cells = table.add_row().cells
            cells[0].width = Cm(5)
            cells[1].width = Cm(11)
            label_run = cells[0].paragraphs[0].add_run(label)
            label_run.bold = True
            label_run.font.size = Pt(11)
            value_run = cells[1].paragraphs[0].add_run(value)
            value_run.font.size = Pt(11)
        return table

    def _add_section(self, doc: Document, title: str, level: int = 1):
        """Add a section heading."""
        doc.add_heading(title, level=level)

    def _add_subsection(self, doc: Document, title: str, text: str):
        doc.add_heading(title, level=2)
        self._add_paragraph(doc, text)

    def _add_labeled(self, doc: Document, label: str, value: str):
        p = doc.add_paragraph()
        p.alignment = WD_ALIGN_PARAGRAPH.JUSTIFY
        label_run = p.add_run(f"{label}: ")
        label_run.bold = True
        p.add_run(value)
        self._style_runs(p)

    def _add_paragraph(self, doc: Document, text: str, justify: bool = True):
        """Add a paragraph with proper formatting."""
        if not text:
            return

        p = doc.add_paragraph(text)
        if justify:
            p.alignment = WD_ALIGN_PARAGRAPH.JUSTIFY
        self._style_runs(p)

    def _add_centered(self, doc: Document, text: str, size=FONT_SIZE, bold=False, italic=False, space_before=None):
        p = doc.add_paragraph()
        p.alignment = WD_ALIGN_PARAGRAPH.CENTER
        if space_before is not None:
            p.paragraph_format.space_before = space_before
        if text:
            run = p.add_run(text)
            run.bold = bold
            run.italic = italic
        self._style_runs(p, size=size)

    def _add_page_break(self, doc: Document):
        doc.add_paragraph().add_run().add_break(WD_BREAK.PAGE)

    def _style_runs(self, paragraph, size=FONT_SIZE):
        for run in paragraph.runs:
            run.font.name = FONT_NAME
            run.font.size = size
