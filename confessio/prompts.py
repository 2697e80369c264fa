"""
Centralized prompt templates for Confessio.

All LLM prompts and fixed user-facing messages are defined here to make
prompt engineering easier and to keep wording consistent across the
CLI, MCP server and answerer.
"""

# =============================================================================
# Fixed Messages
# =============================================================================

NO_RELEVANT_CONTENT_ANSWER = (
    "Não encontrei informações relevantes nas fontes catalogadas. "
    "Tente reformular sua pergunta ou ser mais específico."
)

GENERATION_FALLBACK_ANSWER = (
    "Desculpe, ocorreu um erro ao tentar processar sua pergunta com a IA. "
    "Por favor, tente novamente mais tarde."
)


# =============================================================================
# Answer Prompts
# =============================================================================

DIRECT_REFERENCE_PROMPT = """Você é um assistente teológico reformado. O usuário citou diretamente um trecho de um documento confessional.

DOCUMENTO: {document}
REFERÊNCIA: {reference}
TEXTO ENCONTRADO:
"{content}"

INSTRUÇÕES:
- Responda à pergunta do usuário usando SOMENTE o texto encontrado acima
- Cite a referência ({reference}) ao apresentar o texto
- Se o texto não responder à pergunta, explique o que ele afirma
- Não acrescente informações de outras fontes

PERGUNTA DO USUÁRIO:
{question}

RESPOSTA:"""


NOTE_REFERENCE_PROMPT = """Você é um assistente teológico reformado. O usuário citou diretamente um versículo bíblico.

DOCUMENTO: {document}
REFERÊNCIA BÍBLICA: {reference}
NOTA DE ESTUDO ENCONTRADA:
"{content}"

INSTRUÇÕES:
- Responda à pergunta do usuário usando SOMENTE a nota de estudo acima
- Cite a referência bíblica ({reference}) ao apresentar a explicação
- Se a nota não responder à pergunta, explique o que ela afirma sobre o versículo
- Não acrescente informações de outras fontes

PERGUNTA DO USUÁRIO:
{question}

RESPOSTA:"""


SYNTHESIS_PROMPT = """Você é um assistente de pesquisa teológica focado na Tradição Reformada (Calvinista).

OBJETIVO: Responda a PERGUNTA DO USUÁRIO com um texto fluido e natural, baseando-se ESTRITAMENTE nas informações fornecidas no CONTEXTO.

REGRAS DE FORMATAÇÃO:
1. Não use números sobrescritos, colchetes ([1]) ou outras marcações de referência no texto.
2. Não crie lista de fontes ou bibliografia no final.
3. Escreva como uma resposta direta e bem redigida.

DIRETRIZES DE CONTEÚDO:
- Use apenas o conhecimento presente no CONTEXTO abaixo.
- Se houver versículos bíblicos no contexto, integre-os naturalmente à explicação.
- Se o contexto não tiver a resposta, diga: "As fontes disponíveis não abordam este tópico específico."

### CONTEXTO (FONTES DISPONÍVEIS) ###

{context}

---
PERGUNTA DO USUÁRIO:
{question}

RESPOSTA:"""


# =============================================================================
# Query Analysis Prompts
# =============================================================================

METADATA_FILTER_PROMPT = """Analise a pergunta de um usuário sobre teologia reformada e extraia filtros de busca. Return ONLY valid JSON:
{{"obra_acronimo": null, "livro_biblico": null, "capitulo": null, "secao_ou_versiculo": null}}

Regras:
- obra_acronimo: um destes códigos, se a pergunta mencionar a obra: {document_codes}
- livro_biblico: nome do livro bíblico em português (ex: "Romanos"), se mencionado
- capitulo: número do capítulo, se mencionado
- secao_ou_versiculo: número da seção, pergunta ou versículo, se mencionado
- Use null para tudo o que não estiver explícito na pergunta

Pergunta:
{question}"""


def format_prompt(template: str, **kwargs) -> str:
    """
    Format a prompt template with the given arguments.

    Args:
        template: Prompt template string
        **kwargs: Values to substitute

    Returns:
        Formatted prompt string
    """
    return template.format(**kwargs)
