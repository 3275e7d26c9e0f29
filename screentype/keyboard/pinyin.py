"""Conversion of text into the key sequences a pinyin input method expects."""

import re
from dataclasses import dataclass
from typing import List

from pypinyin import Style, lazy_pinyin

# CJK unified ideographs, extension A and compatibility ideographs
_HAN_RUN_RE = re.compile(r"[\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff]+")


@dataclass(frozen=True)
class PhoneticToken:
    """One unit of input.

    source: characters of the original text this token stands for
    keys: characters to tap (a pinyin syllable or the literal character)
    needs_candidate: whether the input method will offer candidates to pick
    """

    source: str
    keys: str
    needs_candidate: bool


def _passthrough(text: str) -> List[PhoneticToken]:
    return [PhoneticToken(char, char, False) for char in text]


def _han_tokens(run: str) -> List[PhoneticToken]:
    # Converting the whole run lets pypinyin pick readings from phrase context
    syllables = lazy_pinyin(run, style=Style.NORMAL, errors="default")
    if len(syllables) != len(run):
        syllables = [lazy_pinyin(char, style=Style.NORMAL)[0] for char in run]

    tokens = []
    for char, syllable in zip(run, syllables):
        if syllable == char or not syllable.isascii():
            tokens.append(PhoneticToken(char, char, False))
        else:
            tokens.append(PhoneticToken(char, syllable.lower(), True))
    return tokens


def to_phonetic(text: str) -> List[PhoneticToken]:
    """Convert text to an ordered list of PhoneticTokens.

    Han characters become one toneless pinyin token each. Every other
    character passes through unchanged as its own token, so the conversion is
    total and never raises.
    """
    tokens: List[PhoneticToken] = []
    position = 0
    for match in _HAN_RUN_RE.finditer(text):
        tokens.extend(_passthrough(text[position : match.start()]))
        tokens.extend(_han_tokens(match.group()))
        position = match.end()
    tokens.extend(_passthrough(text[position:]))
    return tokens
