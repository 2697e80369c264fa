"""
Static vocabulary tables for query analysis.

Stopwords, synonyms, theological terms, Bible books, topic tagging rules
and the catalogued documents. Loaded once at startup by load_vocabulary()
and passed by reference into the components that need it; nothing
mutates it afterwards, so concurrent requests share it without locking.

An optional JSON overlay (CONFESSIO_VOCABULARY_PATH) can add entries:

    {
        "stopwords": ["segundo"],
        "synonyms": {"ceia": ["eucaristia"]},
        "phrases": {"sola gratia": ["sola", "gratia", "graça"]},
        "theological_terms": ["adoção"],
        "bible_books": ["judas"],
        "topics": {"Oração": ["súplica"]},
        "documents": [{"code": "CH", "title": "Catecismo de Heidelberg", "type": "CATECISMO"}]
    }
"""

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

logger = logging.getLogger(__name__)


# =============================================================================
# Built-in tables
# =============================================================================

STOPWORDS = (
    "o", "a", "os", "as", "um", "uma", "de", "da", "do", "dos", "das",
    "em", "na", "no", "nas", "nos", "por", "para", "com", "sem", "sob",
    "que", "qual", "quais", "quando", "onde", "como", "e", "ou", "mas",
    "se", "não", "sim", "é", "são", "foi", "foram", "ser", "estar",
    "ter", "haver", "fazer", "ir", "vir", "ver", "dar", "poder",
    "sobre", "segundo", "pelo", "pela", "pelos", "pelas", "seu", "sua",
    "seus", "suas", "este", "esta", "isso", "isto", "aquele", "aquela",
    "entre", "mais", "muito", "diz", "dizem", "ensina", "ensinam", "fala",
    "explique", "explica", "significa", "nosso", "nossa", "ele", "ela",
)

SYNONYMS = {
    "batismo": ("batizar", "batismal", "batizado"),
    "ceia": ("eucaristia", "comunhão", "santa ceia"),
    "justificação": ("justificar", "justificado", "justiça"),
    "santificação": ("santificar", "santidade"),
    "predestinação": ("eleição", "predestinado"),
    "eleição": ("eleitos", "escolhidos", "predestinação"),
    "graça": ("favor", "gracioso"),
    "fé": ("crer", "confiança", "crença"),
    "pecado": ("pecados", "transgressão", "iniquidade"),
    "salvação": ("salvar", "redenção"),
    "oração": ("orar", "súplica", "prece"),
    "igreja": ("congregação", "assembleia"),
    "escritura": ("escrituras", "bíblia", "palavra de deus"),
    "bíblia": ("escrituras", "palavra de deus"),
    "trindade": ("triúno", "três pessoas"),
    "arrependimento": ("arrepender", "penitência", "conversão"),
    "regeneração": ("novo nascimento", "regenerado"),
    "providência": ("governo", "sustento"),
    "pacto": ("aliança", "alianças"),
    "aliança": ("pacto", "pactos"),
    "lei": ("mandamentos", "decálogo"),
    "sacramento": ("sacramentos", "sinais", "selos"),
    "sacramentos": ("sacramento", "sinais", "selos"),
    "adoção": ("adotados", "filhos de deus"),
    "perdão": ("remissão", "perdoar"),
    "criação": ("criar", "criou", "criador"),
    "ressurreição": ("ressuscitar", "ressurgir"),
}

PHRASES = {
    "espírito santo": ("espírito", "santo"),
    "jesus cristo": ("jesus", "cristo"),
    "palavra de deus": ("palavra", "deus"),
    "reino de deus": ("reino", "deus"),
    "filho de deus": ("filho", "deus"),
    "corpo de cristo": ("corpo", "cristo"),
    "novo testamento": ("novo", "testamento"),
    "antigo testamento": ("antigo", "testamento"),
    "sola scriptura": ("sola", "scriptura", "escritura"),
    "sola fide": ("sola", "fide"),
}

THEOLOGICAL_TERMS = (
    "deus", "cristo", "jesus", "espírito", "santo", "salvação", "graça", "fé",
    "pecado", "justificação", "santificação", "eleição", "predestinação",
    "batismo", "ceia", "igreja", "oração", "bíblia", "escritura", "trindade",
    "redenção", "regeneração", "conversão", "arrependimento", "perdão",
)

BIBLE_BOOKS = (
    "gênesis", "êxodo", "levítico", "números", "deuteronômio", "josué", "juízes", "rute",
    "samuel", "reis", "crônicas", "esdras", "neemias", "ester", "jó", "salmos", "provérbios",
    "eclesiastes", "cantares", "isaías", "jeremias", "lamentações", "ezequiel", "daniel",
    "oséias", "joel", "amós", "obadias", "jonas", "miquéias", "naum", "habacuque", "sofonias",
    "ageu", "zacarias", "malaquias", "mateus", "marcos", "lucas", "joão", "atos", "romanos",
    "coríntios", "gálatas", "efésios", "filipenses", "colossenses", "tessalonicenses",
    "timóteo", "tito", "filemom", "hebreus", "tiago", "pedro", "judas", "apocalipse",
)

# Topic name -> phrases that tag a question (or chunk) with the topic
TOPIC_RULES = {
    "Sagradas Escrituras": (
        "escrituras", "palavra de deus", "cânon", "inspiração", "regra de fé",
        "autoridade da escritura", "bíblia", "revelação divina", "infalibilidade",
        "suficiência das escrituras", "livros apócrifos",
    ),
    "Deus e a Santíssima Trindade": (
        "trindade", "três pessoas", "atributos de deus", "divindade", "imutabilidade",
        "onisciência", "onipotência", "onipresença", "geração eterna",
    ),
    "Decretos de Deus": (
        "decretos de deus", "decreto divino", "conselho de deus", "propósito eterno",
        "preordenação", "soberania de deus", "vontade de deus",
    ),
    "Criação": (
        "criação", "criou o homem", "imagem e semelhança", "anjos", "ex nihilo",
        "seis dias", "estado de inocência",
    ),
    "Providência": (
        "providência", "governa todas as criaturas", "causas secundárias", "preservação",
        "governo de deus",
    ),
    "A Queda e o Pecado": (
        "queda do homem", "pecado original", "depravação total", "transgressão",
        "adão e eva", "ira de deus", "morte espiritual", "culpa",
    ),
    "Pacto de Deus": (
        "pacto", "aliança", "pacto de obras", "pacto da graça", "nova aliança",
        "circuncisão",
    ),
    "Cristo, o Mediador": (
        "mediador", "duas naturezas", "profeta, sacerdote e rei", "encarnação",
        "propiciação", "expiação", "ressurreição de cristo", "intercessão",
    ),
    "Fé": (
        "fé salvadora", "certeza da fé", "fé em cristo", "assentimento", "definição de fé",
    ),
    "Regeneração e Arrependimento": (
        "arrependimento", "regeneração", "novo nascimento", "conversão", "penitência",
        "mortificação",
    ),
    "Vida Cristã": (
        "vida cristã", "boas obras", "negação de si mesmo", "tomar a cruz",
        "perseverança", "obediência",
    ),
    "Justificação pela Fé": (
        "justificação", "justiça imputada", "imputação", "perdão dos pecados",
        "remissão dos pecados", "sola fide", "justiça de cristo",
    ),
    "Oração": (
        "oração", "orar", "pai nosso", "súplica", "invocação", "ação de graças",
    ),
    "Eleição e Predestinação": (
        "eleição", "predestinação", "reprovação", "eleitos", "escolhidos",
    ),
    "Ressurreição Final": (
        "ressurreição final", "juízo final", "ressurreição dos mortos", "vida eterna",
        "inferno", "estado intermediário",
    ),
    "A Igreja": (
        "igreja", "comunhão dos santos", "disciplina eclesiástica", "presbíteros",
        "diáconos", "governo da igreja", "poder das chaves",
    ),
    "Sacramentos": (
        "sacramentos", "sacramento", "batismo", "ceia do senhor", "santa ceia",
        "batismo infantil", "eucaristia", "transubstanciação", "sinais e selos",
    ),
    "Liberdade Cristã": (
        "liberdade cristã", "liberdade de consciência", "magistrado civil",
        "governo civil", "coisas indiferentes",
    ),
    "Livre-Arbítrio": (
        "livre-arbítrio", "livre arbítrio", "vontade do homem", "escravidão da vontade",
        "pelagianismo",
    ),
    "Vocação Eficaz": (
        "vocação eficaz", "chamado eficaz", "adoção", "santificação", "união com cristo",
    ),
    "A Lei de Deus": (
        "lei de deus", "dez mandamentos", "decálogo", "lei moral", "lei cerimonial",
        "dia do senhor", "mandamentos",
    ),
}


@dataclass(frozen=True)
class DocumentInfo:
    """A catalogued work that can be cited by code."""

    code: str
    title: str
    document_type: str


DOCUMENTS = (
    DocumentInfo("CFW", "Confissão de Fé de Westminster", "CONFISSAO"),
    DocumentInfo("CM", "Catecismo Maior de Westminster", "CATECISMO"),
    DocumentInfo("BC", "Breve Catecismo de Westminster", "CATECISMO"),
    DocumentInfo("ICR", "Institutas da Religião Cristã", "LIVRO"),
    DocumentInfo("TSB", "Teologia Sistemática de Berkhof", "TEOLOGIA_SISTEMATICA"),
)


# =============================================================================
# Vocabulary
# =============================================================================


@dataclass(frozen=True)
class Vocabulary:
    """Immutable lookup tables shared by the query-analysis components."""

    stopwords: frozenset
    synonyms: Mapping[str, tuple]
    phrases: Mapping[str, tuple]
    theological_terms: frozenset
    bible_books: tuple
    topic_rules: Mapping[str, tuple]
    documents: tuple
    # (lookup key, document code), longest key first
    document_lookup: tuple

    @property
    def document_codes(self) -> tuple:
        return tuple(doc.code for doc in self.documents)

    def document(self, code: str) -> Optional[DocumentInfo]:
        for doc in self.documents:
            if doc.code.upper() == code.upper():
                return doc
        return None

    def synonyms_for(self, term: str) -> tuple:
        return self.synonyms.get(term.lower(), ())

    def is_stopword(self, term: str) -> bool:
        return term.lower() in self.stopwords

    def is_theological_term(self, term: str) -> bool:
        return term.lower() in self.theological_terms

    def mentions_bible_book(self, text: str) -> bool:
        text = text.lower()
        return any(re.search(rf"\b{re.escape(book)}\b", text) for book in self.bible_books)


def build_document_lookup(documents: tuple) -> tuple:
    """
    Map acronyms, full titles and common names ('catecismo maior' from
    'Catecismo Maior de Westminster') to document codes, longest key first
    so 'breve catecismo' wins over a shorter overlapping key.
    """
    lookup: dict[str, str] = {}
    for doc in documents:
        lookup.setdefault(doc.code.lower(), doc.code)
        title = doc.title.lower()
        lookup.setdefault(title, doc.code)
        if " de " in title:
            common_name = title.split(" de ", 1)[0].strip()
            if common_name and common_name != doc.code.lower():
                lookup.setdefault(common_name, doc.code)

    return tuple(sorted(lookup.items(), key=lambda kv: len(kv[0]), reverse=True))


def _freeze_mapping(mapping: dict) -> Mapping[str, tuple]:
    return MappingProxyType({
        key.lower(): tuple(dict.fromkeys(v.lower() for v in values))
        for key, values in mapping.items()
    })


def _merge_mapping(base: dict, extra: dict) -> dict:
    merged = {key: list(values) for key, values in base.items()}
    for key, values in extra.items():
        merged.setdefault(key, [])
        merged[key].extend(values)
    return merged


def load_vocabulary(path: Optional[Path] = None) -> Vocabulary:
    """
    Build the vocabulary from the built-in tables plus an optional JSON overlay.

    Args:
        path: Overlay file. Entries are added to the built-in tables.

    Returns:
        Immutable Vocabulary

    Raises:
        FileNotFoundError: If path is given but does not exist
        ValueError: If the overlay is not valid JSON
    """
    stopwords = set(STOPWORDS)
    synonyms = dict(SYNONYMS)
    phrases = dict(PHRASES)
    theological_terms = set(THEOLOGICAL_TERMS)
    bible_books = list(BIBLE_BOOKS)
    topic_rules = dict(TOPIC_RULES)
    documents = list(DOCUMENTS)

    if path is not None:
        path = Path(path)
        try:
            overlay = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid vocabulary overlay {path}: {e}") from e

        stopwords.update(w.lower() for w in overlay.get("stopwords", []))
        synonyms = _merge_mapping(synonyms, overlay.get("synonyms", {}))
        phrases = _merge_mapping(phrases, overlay.get("phrases", {}))
        theological_terms.update(t.lower() for t in overlay.get("theological_terms", []))
        bible_books.extend(b.lower() for b in overlay.get("bible_books", []) if b.lower() not in bible_books)
        topic_rules = _merge_mapping(topic_rules, overlay.get("topics", {}))

        known_codes = {doc.code for doc in documents}
        for entry in overlay.get("documents", []):
            code = entry["code"].upper()
            if code not in known_codes:
                documents.append(DocumentInfo(code, entry["title"], entry.get("type", "LIVRO")))
                known_codes.add(code)

        logger.info(f"Vocabulary overlay loaded from {path}")

    documents_tuple = tuple(documents)

    return Vocabulary(
        stopwords=frozenset(stopwords),
        synonyms=_freeze_mapping(synonyms),
        phrases=_freeze_mapping(phrases),
        theological_terms=frozenset(theological_terms),
        bible_books=tuple(bible_books),
        topic_rules=MappingProxyType({
            name: tuple(dict.fromkeys(p.lower() for p in triggers))
            for name, triggers in topic_rules.items()
        }),
        documents=documents_tuple,
        document_lookup=build_document_lookup(documents_tuple),
    )


# Singleton instance
_vocabulary: Optional[Vocabulary] = None


def get_vocabulary() -> Vocabulary:
    """Get or load the shared vocabulary (built-ins plus CONFESSIO_VOCABULARY_PATH)."""
    global _vocabulary
    if _vocabulary is None:
        from confessio.config import config

        _vocabulary = load_vocabulary(config.VOCABULARY_PATH)
    return _vocabulary
