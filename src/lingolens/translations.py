"""
Offline vocabulary for the COCO classes the local detector can report.

Used when no vision API is configured: the prominent detection's class name
is looked up here to build a label without any network call.
"""

from typing import Dict, Tuple

LANGUAGE_NAMES: Dict[str, str] = {
    "fi": "Finnish",
    "ru": "Russian",
    "fr": "French",
    "es": "Spanish",
}

OBJECT_TRANSLATIONS: Dict[str, Dict[str, str]] = {
    "fi": {
        # Animals
        "bird": "Lintu", "cat": "Kissa", "dog": "Koira", "horse": "Hevonen",
        "sheep": "Lammas", "cow": "Lehmä", "elephant": "Norsu", "bear": "Karhu",
        "zebra": "Seepra", "giraffe": "Kirahvi",
        # Vehicles
        "bicycle": "Polkupyörä", "car": "Auto", "motorcycle": "Moottoripyörä",
        "airplane": "Lentokone", "bus": "Bussi", "train": "Juna",
        "truck": "Kuorma-auto", "boat": "Vene",
        # Household
        "chair": "Tuoli", "couch": "Sohva", "potted_plant": "Ruukkukasvi",
        "bed": "Sänky", "dining_table": "Ruokapöytä", "toilet": "WC",
        "tv": "Televisio", "laptop": "Kannettava tietokone", "mouse": "Hiiri",
        "remote": "Kaukosäädin", "keyboard": "Näppäimistö",
        "cell_phone": "Matkapuhelin", "microwave": "Mikroaaltouuni",
        "oven": "Uuni", "toaster": "Leivänpaahdin", "sink": "Pesuallas",
        "refrigerator": "Jääkaappi", "book": "Kirja", "clock": "Kello",
        "vase": "Maljakko", "scissors": "Sakset", "teddy_bear": "Nallekarhu",
        "hair_drier": "Hiustenkuivaaja", "toothbrush": "Hammasharja",
        # Food
        "banana": "Banaani", "apple": "Omena", "sandwich": "Voileipä",
        "orange": "Appelsiini", "broccoli": "Parsakaali", "carrot": "Porkkana",
        "hot_dog": "Hodari", "pizza": "Pizza", "donut": "Donitsi", "cake": "Kakku",
        # Kitchen
        "bottle": "Pullo", "wine_glass": "Viinilasi", "cup": "Kuppi",
        "fork": "Haarukka", "knife": "Veitsi", "spoon": "Lusikka", "bowl": "Kulho",
        # Personal items
        "backpack": "Reppu", "umbrella": "Sateenvarjo", "handbag": "Käsilaukku",
        "tie": "Solmio", "suitcase": "Matkalaukku",
        # Sports
        "frisbee": "Frisbee", "skis": "Sukset", "snowboard": "Lumilevy",
        "sports_ball": "Urheilupallo", "kite": "Leija",
        "baseball_bat": "Pesäpallomaila", "baseball_glove": "Pesäpallohanska",
        "skateboard": "Rullalauta", "surfboard": "Surffilauta",
        "tennis_racket": "Tennismaila",
        # Street
        "traffic_light": "Liikennevalo", "fire_hydrant": "Paloposti",
        "stop_sign": "Stop-merkki", "parking_meter": "Pysäköintimittari",
        "bench": "Penkki",
    },
    "ru": {
        "bird": "Птица", "cat": "Кошка", "dog": "Собака", "horse": "Лошадь",
        "sheep": "Овца", "cow": "Корова", "elephant": "Слон", "bear": "Медведь",
        "zebra": "Зебра", "giraffe": "Жираф",
        "bicycle": "Велосипед", "car": "Машина", "motorcycle": "Мотоцикл",
        "airplane": "Самолёт", "bus": "Автобус", "train": "Поезд",
        "truck": "Грузовик", "boat": "Лодка",
        "chair": "Стул", "couch": "Диван", "potted_plant": "Горшечное растение",
        "bed": "Кровать", "dining_table": "Обеденный стол", "toilet": "Туалет",
        "tv": "Телевизор", "laptop": "Ноутбук", "mouse": "Мышь",
        "remote": "Пульт", "keyboard": "Клавиатура",
        "cell_phone": "Мобильный телефон", "microwave": "Микроволновка",
        "oven": "Духовка", "toaster": "Тостер", "sink": "Раковина",
        "refrigerator": "Холодильник", "book": "Книга", "clock": "Часы",
        "vase": "Ваза", "scissors": "Ножницы", "teddy_bear": "Плюшевый мишка",
        "hair_drier": "Фен", "toothbrush": "Зубная щётка",
        "banana": "Банан", "apple": "Яблоко", "sandwich": "Сэндвич",
        "orange": "Апельсин", "broccoli": "Брокколи", "carrot": "Морковь",
        "hot_dog": "Хот-дог", "pizza": "Пицца", "donut": "Пончик", "cake": "Торт",
        "bottle": "Бутылка", "wine_glass": "Бокал", "cup": "Чашка",
        "fork": "Вилка", "knife": "Нож", "spoon": "Ложка", "bowl": "Миска",
        "backpack": "Рюкзак", "umbrella": "Зонт", "handbag": "Сумочка",
        "tie": "Галстук", "suitcase": "Чемодан",
        "frisbee": "Фрисби", "skis": "Лыжи", "snowboard": "Сноуборд",
        "sports_ball": "Спортивный мяч", "kite": "Воздушный змей",
        "baseball_bat": "Бейсбольная бита", "baseball_glove": "Бейсбольная перчатка",
        "skateboard": "Скейтборд", "surfboard": "Доска для сёрфинга",
        "tennis_racket": "Теннисная ракетка",
        "traffic_light": "Светофор", "fire_hydrant": "Пожарный гидрант",
        "stop_sign": "Знак стоп", "parking_meter": "Парковочный счётчик",
        "bench": "Скамейка",
    },
    "fr": {
        "bird": "Oiseau", "cat": "Chat", "dog": "Chien", "horse": "Cheval",
        "sheep": "Mouton", "cow": "Vache", "elephant": "Éléphant", "bear": "Ours",
        "zebra": "Zèbre", "giraffe": "Girafe",
        "bicycle": "Vélo", "car": "Voiture", "motorcycle": "Moto",
        "airplane": "Avion", "bus": "Bus", "train": "Train",
        "truck": "Camion", "boat": "Bateau",
        "chair": "Chaise", "couch": "Canapé", "potted_plant": "Plante en pot",
        "bed": "Lit", "dining_table": "Table à manger", "toilet": "Toilettes",
        "tv": "Télévision", "laptop": "Ordinateur portable", "mouse": "Souris",
        "remote": "Télécommande", "keyboard": "Clavier",
        "cell_phone": "Téléphone portable", "microwave": "Micro-ondes",
        "oven": "Four", "toaster": "Grille-pain", "sink": "Évier",
        "refrigerator": "Réfrigérateur", "book": "Livre", "clock": "Horloge",
        "vase": "Vase", "scissors": "Ciseaux", "teddy_bear": "Ours en peluche",
        "hair_drier": "Sèche-cheveux", "toothbrush": "Brosse à dents",
        "banana": "Banane", "apple": "Pomme", "sandwich": "Sandwich",
        "orange": "Orange", "broccoli": "Brocoli", "carrot": "Carotte",
        "hot_dog": "Hot-dog", "pizza": "Pizza", "donut": "Beignet", "cake": "Gâteau",
        "bottle": "Bouteille", "wine_glass": "Verre à vin", "cup": "Tasse",
        "fork": "Fourchette", "knife": "Couteau", "spoon": "Cuillère", "bowl": "Bol",
        "backpack": "Sac à dos", "umbrella": "Parapluie", "handbag": "Sac à main",
        "tie": "Cravate", "suitcase": "Valise",
        "frisbee": "Frisbee", "skis": "Skis", "snowboard": "Snowboard",
        "sports_ball": "Ballon de sport", "kite": "Cerf-volant",
        "baseball_bat": "Batte de baseball", "baseball_glove": "Gant de baseball",
        "skateboard": "Planche à roulettes", "surfboard": "Planche de surf",
        "tennis_racket": "Raquette de tennis",
        "traffic_light": "Feu de circulation", "fire_hydrant": "Bouche d'incendie",
        "stop_sign": "Panneau stop", "parking_meter": "Parcmètre",
        "bench": "Banc",
    },
    "es": {
        "bird": "Pájaro", "cat": "Gato", "dog": "Perro", "horse": "Caballo",
        "sheep": "Oveja", "cow": "Vaca", "elephant": "Elefante", "bear": "Oso",
        "zebra": "Cebra", "giraffe": "Jirafa",
        "bicycle": "Bicicleta", "car": "Coche", "motorcycle": "Motocicleta",
        "airplane": "Avión", "bus": "Autobús", "train": "Tren",
        "truck": "Camión", "boat": "Barco",
        "chair": "Silla", "couch": "Sofá", "potted_plant": "Planta en maceta",
        "bed": "Cama", "dining_table": "Mesa de comedor", "toilet": "Inodoro",
        "tv": "Televisión", "laptop": "Portátil", "mouse": "Ratón",
        "remote": "Control remoto", "keyboard": "Teclado",
        "cell_phone": "Teléfono móvil", "microwave": "Microondas",
        "oven": "Horno", "toaster": "Tostadora", "sink": "Fregadero",
        "refrigerator": "Refrigerador", "book": "Libro", "clock": "Reloj",
        "vase": "Florero", "scissors": "Tijeras", "teddy_bear": "Osito de peluche",
        "hair_drier": "Secador de pelo", "toothbrush": "Cepillo de dientes",
        "banana": "Plátano", "apple": "Manzana", "sandwich": "Sándwich",
        "orange": "Naranja", "broccoli": "Brócoli", "carrot": "Zanahoria",
        "hot_dog": "Perrito caliente", "pizza": "Pizza", "donut": "Dona",
        "cake": "Pastel",
        "bottle": "Botella", "wine_glass": "Copa de vino", "cup": "Taza",
        "fork": "Tenedor", "knife": "Cuchillo", "spoon": "Cuchara", "bowl": "Tazón",
        "backpack": "Mochila", "umbrella": "Paraguas", "handbag": "Bolso",
        "tie": "Corbata", "suitcase": "Maleta",
        "frisbee": "Frisbee", "skis": "Esquís", "snowboard": "Snowboard",
        "sports_ball": "Pelota deportiva", "kite": "Cometa",
        "baseball_bat": "Bate de béisbol", "baseball_glove": "Guante de béisbol",
        "skateboard": "Monopatín", "surfboard": "Tabla de surf",
        "tennis_racket": "Raqueta de tenis",
        "traffic_light": "Semáforo", "fire_hydrant": "Hidrante",
        "stop_sign": "Señal de alto", "parking_meter": "Parquímetro",
        "bench": "Banco",
    },
}

# (sentence in target language, English translation)
EXAMPLE_SENTENCES: Dict[str, Dict[str, Tuple[str, str]]] = {
    "fi": {
        "cat": ("Kissa nukkuu sohvalla.", "The cat is sleeping on the couch."),
        "dog": ("Koira leikkii pallolla.", "The dog is playing with a ball."),
        "chair": ("Istu tuolille.", "Sit on the chair."),
        "book": ("Luen kirjaa.", "I am reading a book."),
        "car": ("Auto on punainen.", "The car is red."),
        "cup": ("Juo kupista.", "Drink from the cup."),
        "laptop": ("Työskentelen kannettavalla tietokoneella.", "I am working on a laptop."),
        "clock": ("Kello näyttää kolmea.", "The clock shows three o'clock."),
        "cell_phone": ("Missä on matkapuhelimeni?", "Where is my cell phone?"),
    },
    "ru": {
        "cat": ("Кошка спит на диване.", "The cat is sleeping on the couch."),
        "dog": ("Собака играет с мячом.", "The dog is playing with a ball."),
        "chair": ("Сядь на стул.", "Sit on the chair."),
        "book": ("Я читаю книгу.", "I am reading a book."),
        "car": ("Машина красная.", "The car is red."),
        "cup": ("Пей из чашки.", "Drink from the cup."),
        "laptop": ("Я работаю на ноутбуке.", "I am working on a laptop."),
        "cell_phone": ("Где мой телефон?", "Where is my cell phone?"),
    },
    "fr": {
        "cat": ("Le chat dort sur le canapé.", "The cat is sleeping on the couch."),
        "dog": ("Le chien joue avec une balle.", "The dog is playing with a ball."),
        "chair": ("Asseyez-vous sur la chaise.", "Sit on the chair."),
        "book": ("Je lis un livre.", "I am reading a book."),
        "car": ("La voiture est rouge.", "The car is red."),
        "cup": ("Buvez dans la tasse.", "Drink from the cup."),
        "laptop": ("Je travaille sur un ordinateur portable.", "I am working on a laptop."),
        "cell_phone": ("Où est mon téléphone portable?", "Where is my cell phone?"),
    },
    "es": {
        "cat": ("El gato duerme en el sofá.", "The cat is sleeping on the couch."),
        "dog": ("El perro juega con una pelota.", "The dog is playing with a ball."),
        "chair": ("Siéntate en la silla.", "Sit on the chair."),
        "book": ("Estoy leyendo un libro.", "I am reading a book."),
        "car": ("El coche es rojo.", "The car is red."),
        "cup": ("Bebe de la taza.", "Drink from the cup."),
        "laptop": ("Estoy trabajando en un portátil.", "I am working on a laptop."),
        "cell_phone": ("¿Dónde está mi teléfono móvil?", "Where is my cell phone?"),
    },
}

DEFAULT_EXAMPLES: Dict[str, Tuple[str, str]] = {
    "fi": ("Tämä on OBJECT.", "This is a/an OBJECT."),
    "ru": ("Это OBJECT.", "This is a/an OBJECT."),
    "fr": ("C'est un(e) OBJECT.", "This is a/an OBJECT."),
    "es": ("Esto es un(a) OBJECT.", "This is a/an OBJECT."),
}


def class_key(class_name: str) -> str:
    """'cell phone' -> 'cell_phone'"""
    return class_name.strip().lower().replace(" ", "_")


def translate_object(class_name: str, language: str) -> str:
    """Translated name of a detector class; unknown classes come back unchanged."""
    table = OBJECT_TRANSLATIONS.get(language) or OBJECT_TRANSLATIONS["fi"]
    return table.get(class_key(class_name), class_name)


def example_sentence(class_name: str, language: str) -> Tuple[str, str]:
    """
    Example sentence for an object, with its English translation.

    Falls back to a "This is a/an OBJECT." template.
    """
    key = class_key(class_name)
    examples = EXAMPLE_SENTENCES.get(language) or EXAMPLE_SENTENCES["fi"]
    if key in examples:
        return examples[key]

    original, translated = DEFAULT_EXAMPLES.get(language) or DEFAULT_EXAMPLES["fi"]
    return (
        original.replace("OBJECT", translate_object(class_name, language)),
        translated.replace("OBJECT", class_name),
    )
