"""
imgup - paste an image, get a public link.

Uploads image bytes to S3-compatible object storage (AWS S3, Cloudflare R2)
and returns a stable public URL.
"""
__version__ = "0.1.0"
