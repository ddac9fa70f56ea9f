"""Class label table for the skin condition classifier.

Order is index-aligned with the model's softmax output and must never change
without retraining the model.
"""

from __future__ import annotations

DISEASE_CLASSES: tuple[str, ...] = (
    "Acne",
    "Eczema",
    "Melanoma",
    "Psoriasis",
    "Basal Cell Carcinoma",
    "Seborrheic Keratoses",
    "Warts",
    "Atopic Dermatitis",
    "Melanocytic Nevus",
    "Benign Keratosis-like Lesions",
    "Tinea",
)

INPUT_SHAPE: tuple[int, int, int] = (224, 224, 3)
