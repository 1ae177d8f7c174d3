import logging

import flet as ft

from vocab_srs import deck_loader
from vocab_srs.category_filter import EmptyCategorySelection
from vocab_srs.review_service import SessionController

logger = logging.getLogger(__name__)

CSV_URL_KEY = "csv_url"


class MainPage(ft.Container):
    def __init__(self, page: ft.Page, controller: SessionController):
        super().__init__()
        self.app_page = page
        self.controller = controller
        self.showing_answer = False

        # Title of the APP
        self.title = ft.Container(
            content=ft.Text(value="Vocab Flashcards", size=40, weight=ft.FontWeight.BOLD),
            bgcolor=ft.Colors.AMBER_100,
            padding=10,
            border_radius=20,
            expand=True,
        )
        self.menu_button = ft.FloatingActionButton(
            text="Menu", icon=ft.Icons.TUNE, width=140, on_click=self.show_menu
        )
        self.import_button = ft.FloatingActionButton(
            text="Decks", icon=ft.Icons.UPLOAD_FILE, width=140, on_click=self.show_import_page
        )
        self.top_display = ft.Row(
            controls=[self.title, self.menu_button, self.import_button],
            alignment=ft.MainAxisAlignment.CENTER,
        )

        # Card area
        self.status_line = ft.Text(value="", size=14, color=ft.Colors.GREY_700)
        self.front_text = ft.Text(value="…", size=50, weight=ft.FontWeight.BOLD, text_align=ft.TextAlign.CENTER)
        self.back_text = ft.Text(value="", size=30, text_align=ft.TextAlign.CENTER)
        self.example_source = ft.Text(value="", size=16, italic=True)
        self.example_translation = ft.Text(value="", size=16, color=ft.Colors.GREY_700)
        self.examples = ft.Container(
            content=ft.Column(controls=[self.example_source, self.example_translation]),
            bgcolor=ft.Colors.GREY_50,
            border_radius=10,
            padding=10,
        )
        self.answer_block = ft.Column(
            controls=[self.back_text, self.examples],
            horizontal_alignment=ft.CrossAxisAlignment.CENTER,
            visible=False,
        )

        self.flip_button = ft.ElevatedButton("Show answer", on_click=self.toggle_answer)
        self.right_button = ft.ElevatedButton(
            "Right",
            on_click=self.grade_right,
            style=ft.ButtonStyle(bgcolor={ft.ControlState.DEFAULT: ft.Colors.GREEN_200}),
        )
        self.wrong_button = ft.ElevatedButton(
            "Wrong",
            on_click=self.grade_wrong,
            style=ft.ButtonStyle(bgcolor={ft.ControlState.DEFAULT: ft.Colors.RED_200}),
        )
        self.reset_button = ft.TextButton("Reset progress", on_click=self.confirm_reset)

        self.card_area = ft.Container(
            content=ft.Column(
                controls=[
                    self.status_line,
                    ft.Container(content=self.front_text, alignment=ft.alignment.center, expand=True),
                    self.answer_block,
                    ft.Row(
                        controls=[self.flip_button, self.wrong_button, self.right_button],
                        alignment=ft.MainAxisAlignment.SPACE_EVENLY,
                    ),
                    ft.Row(controls=[self.reset_button], alignment=ft.MainAxisAlignment.END),
                ],
                expand=True,
                spacing=20,
            ),
            bgcolor=ft.Colors.GREY_200,
            border_radius=20,
            padding=20,
            expand=True,
        )

        # Category menu (initially invisible)
        self.category_list = ft.Column(controls=[], scroll=ft.ScrollMode.AUTO, expand=True)
        self.menu_page = ft.Container(
            content=ft.Column(
                controls=[
                    ft.Text(value="Choose categories", size=40, weight=ft.FontWeight.BOLD),
                    ft.Row(
                        controls=[
                            ft.ElevatedButton("Select all", on_click=self.select_all),
                            ft.ElevatedButton("Select none", on_click=self.select_none),
                        ]
                    ),
                    self.category_list,
                    ft.FloatingActionButton(text="Start", on_click=self.start_study),
                ],
                expand=True,
            ),
            expand=True,
            padding=30,
            bgcolor=ft.Colors.ORANGE_100,
            border_radius=20,
            visible=False,
        )

        # Deck import page (initially invisible)
        self.csv_url = ft.TextField(
            label="CSV link",
            value=self.controller.store.load_setting(CSV_URL_KEY, "") or "",
            expand=True,
        )
        self.json_box = ft.TextField(
            label="Deck JSON",
            multiline=True,
            min_lines=6,
            max_lines=12,
        )
        self.file_picker = ft.FilePicker(on_result=self.on_file_picked)
        self.import_page = ft.Container(
            content=ft.Column(
                controls=[
                    ft.Text(value="Load a deck from...", size=40, weight=ft.FontWeight.BOLD),
                    ft.Row(
                        controls=[
                            self.csv_url,
                            ft.ElevatedButton("Save link", on_click=self.save_csv_url),
                            ft.ElevatedButton("Refresh from link", on_click=self.refresh_from_url),
                        ]
                    ),
                    ft.ElevatedButton("Import CSV / Excel file", icon=ft.Icons.FOLDER_OPEN, on_click=self.pick_file),
                    self.json_box,
                    ft.Row(
                        controls=[
                            ft.ElevatedButton("Export JSON", on_click=self.export_json),
                            ft.ElevatedButton("Import JSON", on_click=self.import_json),
                        ]
                    ),
                    ft.FloatingActionButton(text="Return to cards", on_click=self.return_to_cards),
                ],
                scroll=ft.ScrollMode.AUTO,
                expand=True,
            ),
            expand=True,
            padding=30,
            bgcolor=ft.Colors.BLUE_50,
            border_radius=20,
            visible=False,
        )

        self.mainpage = ft.Column(
            controls=[self.top_display, self.card_area, self.menu_page, self.import_page],
            expand=True,
        )
        self.content = self.mainpage
        self.expand = True

        page.overlay.append(self.file_picker)
        self.render_card(update=False)
        self.build_category_list()
        self._show_only(self.menu_page)

    # ------------------------------------------------------------------
    # Page switching
    # ------------------------------------------------------------------
    def _show_only(self, panel):
        self.card_area.visible = panel is self.card_area
        self.menu_page.visible = panel is self.menu_page
        self.import_page.visible = panel is self.import_page

    def show_menu(self, e=None):
        self.build_category_list()
        self._show_only(self.menu_page)
        self.update()

    def show_import_page(self, e):
        self._show_only(self.import_page)
        self.update()

    def return_to_cards(self, e):
        self._show_only(self.card_area)
        self.update()

    def _show_message(self, text: str):
        self.app_page.open(ft.SnackBar(ft.Text(text)))

    # ------------------------------------------------------------------
    # Card rendering
    # ------------------------------------------------------------------
    def render_card(self, update: bool = True):
        card = self.controller.current_card
        summary = self.controller.summary()
        self.showing_answer = False
        self.answer_block.visible = False
        self.flip_button.text = "Show answer"

        if card is None:
            if summary.has_matches:
                self.status_line.value = "Loading…"
                self.front_text.value = "…"
            else:
                self.status_line.value = "No cards match your selected categories. Open Menu and select more."
                self.front_text.value = "No matching cards"
        else:
            self.front_text.value = card.term
            self.status_line.value = (
                f"Categories: {summary.selected_count} selected • "
                f"Due: {summary.due_count}/{summary.active_count} • "
                f"This card: {summary.card_due}"
            )
        if update:
            self.update()

    def toggle_answer(self, e):
        card = self.controller.current_card
        if card is None:
            return
        self.showing_answer = not self.showing_answer
        if self.showing_answer:
            self.back_text.value = card.translation
            self.example_source.value = f"DE: {card.example_source}" if card.example_source else ""
            self.example_translation.value = f"EN: {card.example_translation}" if card.example_translation else ""
            self.examples.visible = card.has_example
            self.flip_button.text = "Hide answer"
        else:
            self.flip_button.text = "Show answer"
        self.answer_block.visible = self.showing_answer
        self.update()

    def grade_right(self, e):
        if self.controller.grade_pass() is not None:
            self.render_card()

    def grade_wrong(self, e):
        if self.controller.grade_fail() is not None:
            self.render_card()

    def confirm_reset(self, e):
        dialog = ft.AlertDialog(
            modal=True,
            title=ft.Text("Reset all progress?"),
            content=ft.Text("The deck and category selection stay the same."),
        )

        def close(ev, confirmed: bool):
            self.app_page.close(dialog)
            if confirmed:
                self.controller.reset_progress()
                self.render_card()

        dialog.actions = [
            ft.TextButton("Cancel", on_click=lambda ev: close(ev, False)),
            ft.TextButton("Reset", on_click=lambda ev: close(ev, True)),
        ]
        self.app_page.open(dialog)

    # ------------------------------------------------------------------
    # Category menu
    # ------------------------------------------------------------------
    def build_category_list(self):
        selected = set(self.controller.state.selected_categories)
        self.category_list.controls = [
            ft.Checkbox(label=category, value=category in selected)
            for category in self.controller.categories()
        ]

    def select_all(self, e):
        for checkbox in self.category_list.controls:
            checkbox.value = True
        self.update()

    def select_none(self, e):
        for checkbox in self.category_list.controls:
            checkbox.value = False
        self.update()

    def start_study(self, e):
        chosen = [checkbox.label for checkbox in self.category_list.controls if checkbox.value]
        try:
            self.controller.change_category_filter(chosen)
        except EmptyCategorySelection as exc:
            self._show_message(str(exc))
            return
        self._show_only(self.card_area)
        self.render_card()

    # ------------------------------------------------------------------
    # Deck import / export
    # ------------------------------------------------------------------
    def _replace_deck(self, cards, source: str):
        self.controller.replace_deck(cards)
        self.render_card(update=False)
        self._show_message(f"Loaded {len(cards)} cards from {source}.")
        self.show_menu()

    def save_csv_url(self, e):
        self.controller.store.save_setting(CSV_URL_KEY, (self.csv_url.value or "").strip())
        self._show_message("Saved CSV URL.")

    def refresh_from_url(self, e):
        url = (self.csv_url.value or "").strip()
        if not url:
            self._show_message("Paste a CSV URL first.")
            return
        try:
            cards = deck_loader.load_cards_from_csv(url)
        except deck_loader.DeckError as exc:
            logger.warning("Refresh from %s failed: %s", url, exc)
            self._show_message(f"Refresh failed: {exc}")
            return
        self._replace_deck(cards, "CSV link")

    def pick_file(self, e):
        self.file_picker.pick_files(allowed_extensions=["csv", "xlsx", "xls", "json"])

    def on_file_picked(self, e: ft.FilePickerResultEvent):
        if not e.files:
            return
        path = e.files[0].path
        try:
            cards = deck_loader.load_cards_from_file(path)
        except deck_loader.DeckError as exc:
            logger.warning("Import of %s failed: %s", path, exc)
            self._show_message(f"Import failed: {exc}")
            return
        self._replace_deck(cards, "file")

    def export_json(self, e):
        self.json_box.value = self.controller.export_deck()
        self.update()

    def import_json(self, e):
        try:
            cards = deck_loader.cards_from_json(self.json_box.value or "")
        except deck_loader.DeckError as exc:
            self._show_message(f"Import failed: {exc}")
            return
        self._replace_deck(cards, "JSON")
