from trivia import db
from trivia.models import Question, User

HOSTS = ['host1', 'host2', 'host3']

# (category, difficulty, text, correct answer, distractors...)
QUESTIONS = [
    ('Science', 'easy', 'What is the chemical symbol for gold?', 'Au', 'Ag', 'Gd', 'Go'),
    ('Science', 'easy', 'Which planet is known as the Red Planet?', 'Mars', 'Venus', 'Jupiter', 'Mercury'),
    ('Science', 'medium', 'What is the hardest natural substance?', 'Diamond', 'Quartz', 'Granite', 'Topaz'),
    ('Science', 'medium', 'How many bones are in the adult human body?', '206', '201', '212', '198'),
    ('Science', 'hard', 'What particle carries the electromagnetic force?', 'Photon', 'Gluon', 'W boson', 'Graviton'),
    ('Geography', 'easy', 'What is the capital of Australia?', 'Canberra', 'Sydney', 'Melbourne', 'Perth'),
    ('Geography', 'easy', 'Which is the longest river in South America?', 'Amazon', 'Parana', 'Orinoco', 'Magdalena'),
    ('Geography', 'medium', 'Which country has the most islands?', 'Sweden', 'Indonesia', 'Philippines', 'Norway'),
    ('Geography', 'medium', 'What is the smallest country by area?', 'Vatican City', 'Monaco', 'San Marino', 'Nauru'),
    ('Geography', 'hard', 'Lake Titicaca lies on the border of Peru and which country?', 'Bolivia', 'Chile', 'Ecuador', 'Brazil'),
    ('History', 'easy', 'In which year did the Berlin Wall fall?', '1989', '1991', '1985', '1979'),
    ('History', 'easy', 'Who was the first President of the United States?', 'George Washington', 'John Adams', 'Thomas Jefferson', 'James Madison'),
    ('History', 'medium', 'Which empire built Machu Picchu?', 'Inca', 'Aztec', 'Maya', 'Olmec'),
    ('History', 'medium', 'The Magna Carta was sealed in which year?', '1215', '1066', '1348', '1492'),
    ('History', 'hard', 'Who was the last Tsar of Russia?', 'Nicholas II', 'Alexander III', 'Peter III', 'Ivan VI'),
    ('Entertainment', 'easy', 'Who painted the Mona Lisa?', 'Leonardo da Vinci', 'Michelangelo', 'Raphael', 'Donatello'),
    ('Entertainment', 'easy', 'How many strings does a standard guitar have?', '6', '4', '7', '12'),
    ('Entertainment', 'medium', 'Which band released the album "Abbey Road"?', 'The Beatles', 'The Rolling Stones', 'The Who', 'Pink Floyd'),
    ('Entertainment', 'medium', 'Which composer wrote "The Four Seasons"?', 'Vivaldi', 'Bach', 'Handel', 'Mozart'),
    ('Entertainment', 'hard', 'What was the first feature-length animated film?', 'El Apostol', 'Snow White', 'Fantasia', 'Pinocchio'),
]


def seed_database():
    """Insert the host accounts and the sample question bank; returns the counts."""
    for username in HOSTS:
        user = User(username=username)
        user.set_password('password')
        db.session.add(user)

    for category, difficulty, text, a, b, c, d in QUESTIONS:
        db.session.add(Question(category=category, difficulty=difficulty, text=text, a=a, b=b, c=c, d=d))

    db.session.commit()
    return len(HOSTS), len(QUESTIONS)
