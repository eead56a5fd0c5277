from aiogram.types import KeyboardButton, ReplyKeyboardMarkup

from src.bot.conversation import MENU_COMBINE, MENU_MATCH

BUTTON_COMBINE = "Объединить вещи в образ"
BUTTON_MATCH = "Подобрать образ к вещи"

# Button label -> menu choice understood by the state machine
MENU_BUTTONS = {
    BUTTON_COMBINE: MENU_COMBINE,
    BUTTON_MATCH: MENU_MATCH,
}


def main_menu_keyboard() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text=BUTTON_COMBINE)],
            [KeyboardButton(text=BUTTON_MATCH)],
        ],
        resize_keyboard=True,
    )
