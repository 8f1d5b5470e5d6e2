"""
Content negotiation over the ``Accept*`` request headers.
"""

import mimetypes
from typing import Dict, List, Optional, Sequence, Tuple, Union

ALIASES = {
    "json": "application/json",
    "html": "text/html",
    "text": "text/plain",
    "xml": "application/xml",
    "urlencoded": "application/x-www-form-urlencoded",
    "form": "application/x-www-form-urlencoded",
    "multipart": "multipart/*",
}


def normalize_type(value: str) -> Optional[str]:
    """Expand ``json``/``.png``-style shorthands into a full media type."""
    if "/" in value:
        return value.lower()
    if value in ALIASES:
        return ALIASES[value]
    guessed, _ = mimetypes.guess_type("file." + value.lstrip("."))
    return guessed


def parse_header(header: str) -> List[Tuple[str, float, Dict[str, str]]]:
    """Split an ``Accept*`` header into ``(value, quality, params)`` entries."""
    entries = []
    for part in header.split(","):
        pieces = [p.strip() for p in part.split(";")]
        value = pieces[0].lower()
        if not value:
            continue
        quality = 1.0
        params = {}
        for param in pieces[1:]:
            key, _, raw = param.partition("=")
            key = key.strip().lower()
            if key == "q":
                try:
                    quality = float(raw)
                except ValueError:
                    quality = 0.0
            elif key:
                params[key] = raw.strip().strip('"')
        entries.append((value, quality, params))
    return entries


def _media_match(accepted: str, offered: str) -> int:
    """Specificity of ``accepted`` matching ``offered``, or -1 for no match."""
    a_type, _, a_sub = accepted.partition("/")
    o_type, _, o_sub = offered.partition("/")
    if a_type not in ("*", o_type) and o_type != "*":
        return -1
    if a_sub not in ("*", o_sub) and o_sub != "*":
        return -1
    return (a_type == o_type) * 2 + (a_sub == o_sub)


def _plain_match(accepted: str, offered: str) -> int:
    if accepted == offered:
        return 2
    if accepted == "*":
        return 0
    # en matches en-US and the reverse
    if accepted.split("-")[0] == offered.split("-")[0]:
        return 1
    return -1


class Accepts:
    """Negotiator bound to one transport request."""

    def __init__(self, req):
        self.headers = req.headers

    def _negotiate(self, header_name: str, default: str, offers: Sequence[str],
                   matcher, normalize=None) -> Union[List[str], str, bool]:
        header = self.headers.get(header_name)
        entries = parse_header(header if header is not None else default)

        if not offers:
            ranked = sorted(
                (e for e in entries if e[1] > 0),
                key=lambda e: e[1],
                reverse=True,
            )
            return [value for value, _, _ in ranked]

        best: Optional[str] = None
        best_key = (0.0, -1)
        for offer in offers:
            candidate = normalize(offer) if normalize else offer.lower()
            if candidate is None:
                continue
            quality, specificity = 0.0, -1
            for value, q, _ in entries:
                score = matcher(value, candidate)
                if score > specificity:
                    quality, specificity = q, score
            if specificity >= 0 and quality > 0 and (quality, specificity) > best_key:
                best, best_key = offer, (quality, specificity)
        return best if best is not None else False

    def types(self, *offers: str):
        """Best of ``offers`` for ``Accept``; all accepted types without args."""
        if len(offers) == 1 and isinstance(offers[0], (list, tuple)):
            offers = tuple(offers[0])
        return self._negotiate("accept", "*/*", offers, _media_match, normalize_type)

    type = types

    def encodings(self, *offers: str):
        if len(offers) == 1 and isinstance(offers[0], (list, tuple)):
            offers = tuple(offers[0])
        result = self._negotiate("accept-encoding", "identity", offers, _plain_match)
        if not offers and "identity" not in result:
            result.append("identity")
        return result

    def charsets(self, *offers: str):
        if len(offers) == 1 and isinstance(offers[0], (list, tuple)):
            offers = tuple(offers[0])
        return self._negotiate("accept-charset", "*", offers, _plain_match)

    def languages(self, *offers: str):
        if len(offers) == 1 and isinstance(offers[0], (list, tuple)):
            offers = tuple(offers[0])
        return self._negotiate("accept-language", "*", offers, _plain_match)
