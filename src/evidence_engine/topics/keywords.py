"""Keyword extraction with term frequencies and TF-IDF."""

from __future__ import annotations

import math
import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from evidence_engine.models.config import KeywordConfig

_WHITESPACE_RE = re.compile(r"\s+")
_PUNCT_RE = re.compile(r"[^\w\s\-]")

STEM_SUFFIXES = ("ing", "ed", "er", "est", "ly", "tion", "sion", "ness", "ment", "able", "ible")

STOP_WORDS = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "has", "he", "in", "is", "it", "its", "of",
        "on", "that", "the", "to", "was", "will", "with", "this", "but", "they", "have", "had", "what", "said",
        "each", "which", "she", "do", "how", "their", "if", "up", "out", "many", "then", "them", "these", "so",
        "some", "her", "would", "make", "like", "into", "him", "time", "two", "more", "go", "no", "way", "could",
        "my", "than", "first", "been", "call", "who", "oil", "sit", "now", "find", "down", "day", "did", "get",
        "come", "made", "may", "part", "over", "new", "sound", "take", "only", "little", "work", "know",
        "place", "year", "live", "me", "back", "give", "most", "very", "after", "thing", "our", "just", "name",
        "good", "sentence", "man", "think", "say", "great", "where", "help", "through", "much", "before",
        "line", "right", "too", "mean", "old", "any", "same", "tell", "boy", "follow", "came", "want", "show",
        "also", "around", "form", "three", "small", "set", "put", "end", "why", "again", "turn", "here", "off",
        "went", "see", "need", "should", "home", "about", "while", "below", "saw", "something", "thought",
        "both", "few", "those", "always", "looked", "large", "often", "together", "asked", "house", "don",
        "world", "going", "school", "important", "until", "food", "keep", "children", "feet", "land", "side",
        "without", "once", "animal", "life", "enough", "took", "sometimes", "four", "head", "above", "kind",
        "began", "almost", "page", "got", "earth", "far", "hand", "high", "mother", "light", "country",
        "father", "let", "night", "picture", "being", "study", "second", "soon", "story", "since", "white",
        "ever", "paper", "hard", "near", "better", "best", "across", "during", "today", "however", "sure",
        "knew", "it's", "try", "told", "young", "sun", "whole", "hear", "example", "heard", "several",
        "change", "answer", "room", "sea", "against", "top", "turned", "learn", "point", "city", "play",
        "toward", "five", "himself", "usually", "money", "seen", "didn", "car", "morning", "i'm", "body",
        "upon", "family", "later", "move", "face", "door", "cut", "done", "group", "true", "leave", "another",
        "open", "seem", "next", "begin", "walk", "ease", "music", "mark", "book", "letter", "mile", "river",
        "care", "plain", "girl", "usual", "ready", "red", "list", "though", "feel", "talk", "bird", "dog",
        "direct", "pose", "song", "measure", "state", "product", "black", "short", "numeral", "class", "wind",
        "question", "happen", "complete", "ship", "area", "half", "rock", "order", "fire", "south", "problem",
        "piece", "pass", "farm", "king", "size", "hour", "hundred", "am", "remember", "step", "early", "hold",
        "west", "ground", "interest", "reach", "fast", "sing", "listen", "six", "table", "travel", "less",
        "ten", "simple", "vowel", "war", "lay", "pattern", "slow", "center", "love", "person", "serve",
        "appear", "road", "map", "science", "rule", "govern", "pull", "cold", "notice", "voice", "fall",
        "power", "town", "fine", "certain", "fly", "unit", "lead", "cry", "dark", "machine", "note", "wait",
        "plan", "figure", "star", "box", "noun", "field", "rest", "correct", "able", "pound", "beauty",
        "drive", "stood", "contain", "front", "teach", "week", "final", "gave", "green", "oh", "quick",
        "develop", "sleep", "warm", "free", "minute", "strong", "special", "mind", "behind", "clear", "tail",
        "produce", "fact", "street", "inch", "lot", "nothing", "course", "stay", "wheel", "full", "force",
        "blue", "object", "decide", "surface", "deep", "moon", "island", "foot", "yet", "busy", "test",
        "record", "boat", "common", "gold", "possible", "plane", "age", "dry", "wonder", "laugh", "thousands",
        "ago", "ran", "check", "game", "shape", "yes", "hot", "miss", "brought", "heat", "snow", "bed", "bring",
        "perhaps", "fill", "east", "weight", "language", "among",
    }
)

DEFAULT_KEYWORD_CONFIG = KeywordConfig()


@dataclass(frozen=True)
class TermFrequency:
    term: str
    count: int
    normalized_frequency: float
    positions: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class TfIdfScore:
    """TF-IDF weight of one term within one document."""

    term: str
    tf: float
    idf: float
    tfidf: float
    count: int
    positions: list[int] = field(default_factory=list)


def stem_word(word: str) -> str:
    """Strip the first matching suffix, or else a plural ``s``."""

    for suffix in STEM_SUFFIXES:
        if word.endswith(suffix) and len(word) > len(suffix) + 2:
            return word[: -len(suffix)]
    if word.endswith("s") and len(word) > 3 and not word.endswith("ss"):
        return word[:-1]
    return word


def preprocess_terms(text: str, config: KeywordConfig = DEFAULT_KEYWORD_CONFIG) -> list[str]:
    """Turn text into the term sequence used for keyword statistics.

    Punctuation other than hyphens is dropped, words outside the configured length range and
    (optionally) stop words are removed, then words are optionally stemmed and joined into
    n-grams.
    """

    processed = _WHITESPACE_RE.sub(" ", text.lower().strip())
    processed = _PUNCT_RE.sub(" ", processed)
    words = [
        w for w in processed.split() if config.min_word_length <= len(w) <= config.max_word_length
    ]
    if config.use_stop_word_filtering:
        words = [w for w in words if w not in STOP_WORDS]
    if config.use_stemming:
        words = [stem_word(w) for w in words]
    if config.ngram_size > 1:
        n = config.ngram_size
        return [" ".join(words[i : i + n]) for i in range(len(words) - n + 1)]
    return words


def calculate_term_frequencies(terms: Sequence[str]) -> list[TermFrequency]:
    """Count terms. Sorted by count descending; equal counts keep first-occurrence order."""

    positions: dict[str, list[int]] = {}
    for i, term in enumerate(terms):
        positions.setdefault(term, []).append(i)

    total = len(terms)
    frequencies = [
        TermFrequency(term=t, count=len(p), normalized_frequency=len(p) / total, positions=p)
        for t, p in positions.items()
    ]
    frequencies.sort(key=lambda f: f.count, reverse=True)
    return frequencies


def calculate_tfidf(documents: Sequence[Sequence[str]]) -> list[list[TfIdfScore]]:
    """Score every term of every document against the whole collection.

    Args:
        documents: Term sequences, one per document.

    Returns:
        One list per input document, in input order, sorted by TF-IDF descending.
    """

    corpus_size = len(documents)
    document_frequencies: dict[str, int] = {}
    for terms in documents:
        for term in set(terms):
            document_frequencies[term] = document_frequencies.get(term, 0) + 1

    results: list[list[TfIdfScore]] = []
    for terms in documents:
        scores = []
        for tf in calculate_term_frequencies(terms):
            idf = math.log(corpus_size / document_frequencies.get(tf.term, 1))
            scores.append(
                TfIdfScore(
                    term=tf.term,
                    tf=tf.normalized_frequency,
                    idf=idf,
                    tfidf=tf.normalized_frequency * idf,
                    count=tf.count,
                    positions=tf.positions,
                )
            )
        scores.sort(key=lambda s: s.tfidf, reverse=True)
        results.append(scores)
    return results


def extract_keywords(
    text: str,
    corpus: Sequence[Sequence[str]],
    config: KeywordConfig = DEFAULT_KEYWORD_CONFIG,
) -> list[TfIdfScore]:
    """Top TF-IDF keywords of ``text`` scored against ``corpus`` plus the text itself."""

    terms = preprocess_terms(text, config)
    scores = calculate_tfidf([*corpus, terms])[-1]
    return [s for s in scores if s.count >= config.min_term_frequency][: config.max_keywords]


def extract_keywords_simple(text: str, config: KeywordConfig = DEFAULT_KEYWORD_CONFIG) -> list[TermFrequency]:
    """Top keywords of ``text`` by raw term frequency."""

    frequencies = calculate_term_frequencies(preprocess_terms(text, config))
    return [f for f in frequencies if f.count >= config.min_term_frequency][: config.max_keywords]


def term_cosine_similarity(terms1: Sequence[str], terms2: Sequence[str]) -> float:
    """Cosine similarity of two term-count vectors; 0 when either side is empty."""

    if not terms1 or not terms2:
        return 0.0
    freq1: dict[str, int] = {}
    freq2: dict[str, int] = {}
    for t in terms1:
        freq1[t] = freq1.get(t, 0) + 1
    for t in terms2:
        freq2[t] = freq2.get(t, 0) + 1

    dot = sum(c * freq2.get(t, 0) for t, c in freq1.items())
    magnitude = math.sqrt(sum(c * c for c in freq1.values())) * math.sqrt(sum(c * c for c in freq2.values()))
    return dot / magnitude if magnitude else 0.0
