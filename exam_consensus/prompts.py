from .config import Query

CHOICE_INSTRUCTIONS = """INSTRUÇÕES IMPORTANTES:
- Responda APENAS com a letra da alternativa correta (A, B, C, D ou E)
- NÃO forneça explicações ou justificativas
- Retorne SOMENTE a alternativa correta, ex: "A alternativa correta é (B)"
- Seja direto e objetivo"""
BINARY_INSTRUCTIONS = """INSTRUÇÕES IMPORTANTES:
- Avalie se o item {item_id} é VERDADEIRO ou FALSO com base no texto acima
- Responda APENAS com "VERDADEIRO" ou "FALSO" (em maiúsculas)
- NÃO forneça explicações ou justificativas
- Seja direto e objetivo"""
DISCURSIVE_INSTRUCTIONS = """INSTRUÇÕES IMPORTANTES:
- Responda à questão {item_id} de forma completa, objetiva e bem estruturada
- Fundamente a resposta no texto acima quando houver
- NÃO repita o enunciado"""
JUSTIFICATION_TEMPLATE = """{text}

Item {item_id}: este item foi avaliado como {answer}.

Por favor, forneça uma justificativa concisa para esta resposta, explicando por que o item é {answer} com base no texto.
Mantenha a explicação objetiva e direta, com no máximo 2-3 frases."""
EXTRACTION_CHOICE = """Analise cuidadosamente a imagem e forneça as seguintes informações em um formato JSON estruturado:

{
  "numero_questao": "número da questão (se disponível)",
  "enunciado": "texto completo do enunciado da questão",
  "alternativas": [
    {"letra": "a", "texto": "texto completo da alternativa A"},
    {"letra": "b", "texto": "texto completo da alternativa B"}
  ],
  "tipo_exceto": true ou false (se a questão pede para identificar a alternativa EXCETO)
}

Instruções importantes:
- Seja extremamente preciso na transcrição do texto
- Mantenha a formatação original, incluindo acentuação
- Tenha certeza que extraiu todas as alternativas, a maioria das vezes são 5 alternativas
- Se a imagem contiver uma tabela, extraia os dados da tabela e formate-os corretamente"""
EXTRACTION_BINARY = """Analise cuidadosamente a imagem que contém um texto e itens numerados.

Extraia o texto principal e identifique cada item numerado que precisa ser avaliado como verdadeiro ou falso.
Não faça nenhuma análise ou julgamento sobre os itens, apenas extraia o conteúdo.

Forneça as informações em um formato JSON estruturado:

{
  "texto_principal": "transcrição do texto principal da questão",
  "itens": [
    {"numero": "1", "afirmacao": "texto completo da afirmação 1"},
    {"numero": "2", "afirmacao": "texto completo da afirmação 2"}
  ]
}

Instruções importantes:
- Seja extremamente preciso na transcrição do texto
- Extraia TODOS os itens visíveis na imagem
- Preserve a formatação original incluindo parênteses, citações, etc."""
EXTRACTION_DISCURSIVE = """Analise cuidadosamente a imagem e transcreva a questão discursiva em um formato JSON estruturado:

{
  "numero_questao": "número da questão (se disponível)",
  "enunciado": "texto completo do enunciado, incluindo textos de apoio"
}

Instruções importantes:
- Seja extremamente preciso na transcrição do texto
- Mantenha a formatação original, incluindo acentuação"""

_INSTRUCTIONS = {
    "choice": CHOICE_INSTRUCTIONS,
    "binary": BINARY_INSTRUCTIONS,
    "discursive": DISCURSIVE_INSTRUCTIONS,
}

EXTRACTION_PROMPTS = {
    "choice": EXTRACTION_CHOICE,
    "binary": EXTRACTION_BINARY,
    "discursive": EXTRACTION_DISCURSIVE,
}


def build_prompt(query: Query) -> str:
    instructions = _INSTRUCTIONS[query.question_type].format(item_id=query.item_id)
    return f"{query.text.strip()}\n\n{instructions}\n"


def build_justification_prompt(query: Query, answer: str) -> str:
    return JUSTIFICATION_TEMPLATE.format(text=query.text.strip(), item_id=query.item_id, answer=answer)


def build_choice_text(statement: str, alternatives: list[dict]) -> str:
    lines = [f"{alt.get('letra', '').strip()}) {alt.get('texto', '').strip()}" for alt in alternatives]
    return f"{statement.strip()}\n\n" + "\n".join(lines)


def build_item_text(base_text: str, statement: str) -> str:
    if not base_text.strip():
        return statement.strip()
    return f"{base_text.strip()}\n\n{statement.strip()}"
