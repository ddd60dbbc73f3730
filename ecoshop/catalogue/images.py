"""
Optimisation des images produit (Pillow): redimensionnement et conversion WebP,
puis dépôt dans Supabase Storage.
- téléchargement limité aux hôtes de IMAGE_ALLOWED_HOSTS (https), sans redirection, MAX_IMAGE_BYTES au plus
"""
import io
import logging
from typing import Iterable, Optional
from urllib.parse import urlparse

import httpx
from PIL import Image, ImageOps
from supabase import Client

from ecoshop.config import IMAGE_ALLOWED_HOSTS, MAX_IMAGE_BYTES

logger = logging.getLogger(__name__)

MAX_DIMENSION = 1600
WEBP_QUALITY = 80


def optimize_image(raw: bytes, max_dimension: int = MAX_DIMENSION, quality: int = WEBP_QUALITY) -> bytes:
    """
    Réduit l'image pour que son plus grand côté tienne dans max_dimension (jamais d'agrandissement),
    applique l'orientation EXIF et ré-encode en WebP.
    Erreurs: PIL.UnidentifiedImageError si les octets ne sont pas une image.
    """
    with Image.open(io.BytesIO(raw)) as src:
        img = ImageOps.exif_transpose(src)
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA" if "A" in img.getbands() else "RGB")
        img.thumbnail((max_dimension, max_dimension))
        out = io.BytesIO()
        img.save(out, format="WEBP", quality=quality)
    return out.getvalue()


def optimized_path(product_id: int, image_id: int) -> str:
    return f"products/{product_id}/{image_id}.webp"


def is_allowed_url(url: str, allowed_hosts: Optional[Iterable[str]] = None) -> bool:
    """URL https dont l'hôte fait partie des hôtes autorisés (IMAGE_ALLOWED_HOSTS par défaut)."""
    hosts = {h.lower() for h in (IMAGE_ALLOWED_HOSTS if allowed_hosts is None else allowed_hosts)}
    parsed = urlparse(url)
    return parsed.scheme == "https" and (parsed.hostname or "").lower() in hosts


async def download(
    http: httpx.AsyncClient,
    url: str,
    allowed_hosts: Optional[Iterable[str]] = None,
    max_bytes: int = MAX_IMAGE_BYTES,
) -> bytes:
    """
    Télécharge l'image source.
    Erreurs:
    - ValueError: hôte non autorisé ou image plus grande que max_bytes
    - httpx.HTTPStatusError: réponse non 2xx (redirections comprises, jamais suivies)
    """
    if not is_allowed_url(url, allowed_hosts):
        raise ValueError(f"Hôte d'image non autorisé: {urlparse(url).hostname}")
    async with http.stream("GET", url, timeout=20, follow_redirects=False) as res:
        res.raise_for_status()
        declared = res.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > max_bytes:
            raise ValueError(f"Image trop volumineuse: {declared} octets")
        chunks = []
        size = 0
        async for chunk in res.aiter_bytes():
            size += len(chunk)
            if size > max_bytes:
                raise ValueError(f"Image trop volumineuse: plus de {max_bytes} octets")
            chunks.append(chunk)
    return b"".join(chunks)


def upload_optimized(client: Client, bucket: str, path: str, data: bytes) -> str:
    """Dépose (upsert) l'image optimisée et retourne son URL publique."""
    storage = client.storage.from_(bucket)
    storage.upload(path, data, {"content-type": "image/webp", "upsert": "true"})
    return storage.get_public_url(path)
