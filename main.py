import logging
import os

import flet as ft

from vocab_srs import deck_loader
from vocab_srs.flashcard_app import MainPage
from vocab_srs.review_service import SessionController
from vocab_srs.state_store import JsonStateStore


def main(page: ft.Page):
    page.title = "Vocab Flashcards"
    page.window.width = 1100
    page.window.height = 780
    page.window.center()
    page.horizontal_alignment = ft.CrossAxisAlignment.CENTER
    page.padding = 30

    controller = SessionController(JsonStateStore())
    controller.start(deck_loader.try_autoload())
    page.add(MainPage(page, controller))


if __name__ == "__main__":
    logging.basicConfig(
        level=os.environ.get("VOCAB_SRS_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ft.app(target=main)
