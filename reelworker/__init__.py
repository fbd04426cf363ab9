"""Garment photo to turntable video worker."""
