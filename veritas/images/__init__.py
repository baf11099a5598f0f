"""Veritas image handling package.

  dataurl.py    — data-URL / base64 decoding and input classification
  processing.py — Pillow normalisation of uploads before storage
  metadata.py   — EXIF extraction (camera, timestamp, GPS, software, size)
  forensics.py  — error level analysis and provenance marker scanning
"""
