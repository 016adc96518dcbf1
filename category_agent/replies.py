"""User-facing chat messages (French, the conversation language)."""

from __future__ import annotations

from typing import Sequence

from .wordpress_client import Category

NOT_DEFINED = "Non défini"
NOT_DEFINED_F = "Non définie"

WELCOME = (
    "Bonjour ! Je suis votre assistant IA pour WordPress. Comment puis-je vous aider "
    "aujourd'hui ? Vous pouvez me demander de \"lister les catégories de produits\" pour commencer."
)
CONNECTION_APOLOGY = (
    "Désolé, je n'arrive pas à joindre votre site WordPress pour le moment. "
    "Veuillez vérifier la connexion et réessayer."
)
LLM_APOLOGY = "Désolé, une erreur est survenue lors de la communication avec l'IA. Veuillez réessayer."
NO_CATEGORIES = "Aucune catégorie de produit n'a été trouvée sur votre site."
ASK_CATEGORY_NAME = "Veuillez spécifier un nom de catégorie."
ASK_CATEGORY_NAME_UPDATE = "Veuillez spécifier un nom de catégorie à mettre à jour."
NOTHING_TO_CHANGE = "Aucune modification à appliquer. Veuillez spécifier un champ à modifier."


def category_list(categories: Sequence[Category]) -> str:
    if not categories:
        return NO_CATEGORIES
    bullets = "\n".join(f" - {category.name}" for category in categories)
    return f"Voici les catégories de produits trouvées :\n\n{bullets}"


def category_metadata(category: Category) -> str:
    """Every field is always listed; missing values get an explicit placeholder."""
    lines = [
        f"Voici les métadonnées pour \"{category.name}\" :",
        "",
        f"- Description : {category.description.strip() or NOT_DEFINED_F}",
        f"- Slug : {category.slug or NOT_DEFINED}",
        f"- Titre SEO (Yoast) : {category.seo.title or NOT_DEFINED}",
        f"- Méta description (Yoast) : {category.seo.meta_description or NOT_DEFINED_F}",
        f"- Expression-clé principale (Yoast) : {category.seo.focus_keyphrase or NOT_DEFINED_F}",
    ]
    return "\n".join(lines)


def suggestions(query: str, names: Sequence[str], for_update: bool = False) -> str:
    target = " à mettre à jour" if for_update else ""
    listing = "\n".join(f" - \"{name}\"" for name in names)
    return (
        f"Je n'ai pas trouvé de correspondance exacte pour \"{query}\"{target}.\n\n"
        f"Vouliez-vous dire l'une de ces catégories ?\n{listing}"
    )


def not_found(query: str, for_update: bool = False) -> str:
    if for_update:
        return f"Désolé, je n'ai pas trouvé de catégorie nommée \"{query}\" à mettre à jour."
    return f"Désolé, je n'ai pas trouvé de catégorie nommée \"{query}\" ou s'en approchant."


def update_success(name: str) -> str:
    return f"La catégorie \"{name}\" a été mise à jour avec succès."


def update_failure(name: str) -> str:
    return f"Une erreur est survenue lors de la mise à jour de la catégorie \"{name}\"."


def copy_success(name: str) -> str:
    return f"La méta description Yoast de \"{name}\" a été copiée dans sa description."


def nothing_to_copy(name: str) -> str:
    return f"La catégorie \"{name}\" n'a pas de méta description Yoast à copier."
