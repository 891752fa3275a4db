# medtasks/seed.py

"""Reference data written on first initialization of either backend."""

from __future__ import annotations

# (username, full name). Seeded password equals the username.
ADMIN_USERS: list[tuple[str, str]] = [
    ("evbelugina", "Белугина Елена Владимировна"),
    ("nvizmaylova", "Измайлова Наталья Викторовна"),
    ("yvnikitenko", "Никитенко Юлия Владимировна"),
    ("nv-mironova", "Миронова Наталья Владимировна"),
    ("aknol", "Кноль Анна Сергеевна"),
    ("nebakulina", "Бакулина Наталья Евгеньевна"),
    ("nv_kovaleva", "Ковалева Наталья Викторовна"),
    ("siyadykin", "Ядыкин Станислав Игоревич"),
]

ORGANIZATIONS: list[str] = [
    'ГАУЗ НСО "ГКП №1" ВПО',
    'ГАУЗ НСО "ГКП №1" ДПО',
    'ГБУЗ НСО "ГКБ №1" КДЦ',
    'ГБУЗ НСО "ДГКБ №1" ДПО',
    'ГБУЗ НСО "НКРБ №1" ВПО, р.п. Кольцово',
    'ГБУЗ НСО "НКРБ №1" ВПО, с. Барышево',
    'ГБУЗ НСО "НКРБ №1" ДПО',
    'ГБУЗ НСО "ГКБ №2" ВПО пр. Дзержинского, 15',
    'ГБУЗ НСО "ГКБ №2" ВПО пр. Дзержинского, 71',
    'ГБУЗ НСО "ГКБ №2" ВПО ул. Кошурникова, 18',
    'ГБУЗ НСО "ГКБ №2" ВПО ул. Гоголя, 225/1',
    'ГБУЗ НСО "ГКБ №2" ВПО п.Восход, ул.Мирная, 1в',
    'ГБУЗ НСО "ГКБ №2" КДЦ пр. Дзержинского, 44',
]

TASK_ASSIGNERS: list[str] = [
    "Белугина Елена Владимировна",
    "Никитенко Юлия Владимировна",
    "Измайлова Наталья Викторовна",
    "Миронова Наталья Владимировна",
    "Бакулина Наталья Евгеньевна",
    "Кноль Анна Сергеевна",
    "Ковалева Наталья Викторовна",
]

# Organization type codes embedded in organization names, in matching order.
ORGANIZATION_TYPES: tuple[str, ...] = ("ВПО", "ДПО", "КС", "КДЦ")
