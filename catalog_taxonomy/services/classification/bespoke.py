"""Bespoke subcategory resolvers.

Two categories cannot be handled by a flat first-match table:

- camisas_y_blusas: "camisa" buckets (denim, lino, estampada, formal)
  must not capture blusas just because they are printed or linen, so
  the garment type (camisa vs blusa) gates the material/style cues.
- ropa_deportiva_y_performance: the garment type (set, top, leggings...)
  is preferred over the sport (running, ciclismo, futbol), which is only
  a low-confidence fallback.
"""
from typing import Optional

from catalog_taxonomy.models import Suggestion
from catalog_taxonomy.services.matching import PatternSet

CAMISAS = "camisas_y_blusas"
DEPORTIVA = "ropa_deportiva_y_performance"

_CAMISA = PatternSet(["camisa", "shirt", "guayabera"])
_BLUSA = PatternSet(["blusa", "blouse", "tunica", "tunika", "off shoulder", "hombros descubiertos"])
_GUAYABERA = PatternSet(["guayabera"])
_DENIM = PatternSet(["denim", "jean"])
_LINO = PatternSet(["lino", "linen"])
_ESTAMPADA = PatternSet(["estampada", "estampado", "print", "printed"])
_FORMAL = PatternSet(["formal", "office", "vestir"])
_OFF_SHOULDER = PatternSet(["off shoulder", "hombros descubiertos"])
_TUNICA = PatternSet(["tunica", "tunika"])
_CUELLO_ALTO = PatternSet(["cuello alto", "turtleneck"])
_MANGA_LARGA = PatternSet(["manga larga", "long sleeve"])
_MANGA_CORTA = PatternSet(["manga corta", "short sleeve"])


def _suggest(category: str, key: str, confidence: float, reason: str) -> Suggestion:
    return Suggestion(category=category, subcategory=key, confidence=confidence, reasons=[reason])


def infer_camisas_y_blusas(text: str) -> Optional[Suggestion]:
    """Subcategory of a shirt/blouse from normalized text."""
    if _GUAYABERA.any_match(text):
        return _suggest(CAMISAS, "guayabera", 0.96, "kw:guayabera")

    is_camisa = _CAMISA.any_match(text)
    is_blusa = _BLUSA.any_match(text)

    if is_camisa:
        if _DENIM.any_match(text):
            return _suggest(CAMISAS, "camisa_denim", 0.94, "kw:camisa_denim")
        if _LINO.any_match(text):
            return _suggest(CAMISAS, "camisa_de_lino", 0.94, "kw:camisa_lino")
        if _ESTAMPADA.any_match(text):
            return _suggest(CAMISAS, "camisa_estampada", 0.9, "kw:camisa_estampada")
        if _FORMAL.any_match(text):
            return _suggest(CAMISAS, "camisa_formal", 0.88, "kw:camisa_formal")

    if _OFF_SHOULDER.any_match(text):
        return _suggest(CAMISAS, "blusa_off_shoulder_hombros_descubiertos", 0.92, "kw:off_shoulder")
    if _TUNICA.any_match(text):
        return _suggest(CAMISAS, "blusa_tipo_tunica", 0.92, "kw:tunica")
    if _CUELLO_ALTO.any_match(text):
        return _suggest(CAMISAS, "blusa_cuello_alto", 0.9, "kw:cuello_alto")
    if _MANGA_LARGA.any_match(text):
        return _suggest(CAMISAS, "blusa_manga_larga", 0.85, "kw:manga_larga")
    if _MANGA_CORTA.any_match(text):
        return _suggest(CAMISAS, "blusa_manga_corta", 0.85, "kw:manga_corta")

    if is_camisa and not is_blusa:
        return _suggest(CAMISAS, "camisa_casual", 0.6, "fallback:camisa")
    if is_blusa:
        return _suggest(CAMISAS, "blusa_manga_corta", 0.6, "fallback:blusa")
    return None


_SET = PatternSet(["set", "conjunto", "2 piezas", "2pzs"])
_COMPRESION = PatternSet(["compresion", "compression"])
_TOP_BRA = PatternSet(["bra", "top deportivo", "top"])
_LEGGINGS = PatternSet(["legging", "leggings"])
_SHORTS = PatternSet(["short", "shorts"])
_PANTS = PatternSet(["pants", "sudadera"])
_CHAQUETA = PatternSet(["chaqueta", "jacket"])
_CAMISETA = PatternSet(["camiseta", "tshirt", "t shirt"])
_RUNNING = PatternSet(["running"])
_CICLISMO = PatternSet(["ciclismo", "cycling"])
_FUTBOL = PatternSet(["futbol", "soccer", "entrenamiento"])

# Garment type first, sport last
_DEPORTIVA_ORDER = (
    (_SET, "conjunto_deportivo", 0.9, "kw:conjunto"),
    (_COMPRESION, "ropa_de_compresion", 0.92, "kw:compresion"),
    (_TOP_BRA, "top_deportivo_bra_deportivo", 0.9, "kw:top_bra"),
    (_LEGGINGS, "leggings_deportivos", 0.9, "kw:leggings"),
    (_SHORTS, "shorts_deportivos", 0.9, "kw:shorts"),
    (_PANTS, "sudadera_pants_deportivos", 0.86, "kw:pants"),
    (_CHAQUETA, "chaqueta_deportiva", 0.86, "kw:chaqueta"),
    (_CAMISETA, "camiseta_deportiva", 0.88, "kw:camiseta"),
    (_RUNNING, "ropa_de_running", 0.78, "kw:running"),
    (_CICLISMO, "ropa_de_ciclismo", 0.78, "kw:ciclismo"),
    (_FUTBOL, "ropa_de_futbol_entrenamiento", 0.78, "kw:futbol"),
)


def infer_ropa_deportiva(text: str) -> Optional[Suggestion]:
    """Subcategory of sportswear from normalized text."""
    for patterns, key, confidence, reason in _DEPORTIVA_ORDER:
        if patterns.any_match(text):
            return _suggest(DEPORTIVA, key, confidence, reason)
    return None


BESPOKE_RESOLVERS = {
    CAMISAS: infer_camisas_y_blusas,
    DEPORTIVA: infer_ropa_deportiva,
}
