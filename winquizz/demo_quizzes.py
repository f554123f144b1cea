"""
Built-in demo quizzes, always available even without quiz files.
Stored in the same JSON shape as files in the quiz directory.
"""

DEMO_QUIZZES = {
    "general-knowledge": {
        "title": "General Knowledge Challenge",
        "description": "Test your GK with five quick questions!",
        "duration_seconds": 60,
        "questions": [
            {
                "question": "Which city is the capital of Maharashtra?",
                "options": ["Mumbai", "Pune", "Nagpur", "Nashik"],
                "correct": 0
            },
            {
                "question": "What is the largest desert in the world?",
                "options": ["Sahara", "Gobi", "Antarctic Desert", "Thar"],
                "correct": 2,
                "explanation": "Deserts are defined by low precipitation, and Antarctica receives less than the Sahara."
            },
            {
                "question": "What is the national bird of India?",
                "options": ["Peacock", "Sparrow", "Parrot", "Eagle"],
                "correct": 0
            },
            {
                "question": "Who was the first Indian to win a Nobel Prize?",
                "options": ["Rabindranath Tagore", "C.V. Raman", "Amartya Sen", "Mother Teresa"],
                "correct": 0,
                "explanation": "Tagore received the Nobel Prize in Literature in 1913."
            },
            {
                "question": "What is the chemical symbol for water?",
                "options": ["H2O", "CO2", "O2", "NaCl"],
                "correct": 0
            }
        ]
    },
    "advanced-knowledge": {
        "title": "Advanced Knowledge Quiz",
        "description": "Challenge yourself with harder questions!",
        "duration_seconds": 120,
        "questions": [
            {
                "question": "What is the name of the process by which water moves through a plant?",
                "options": ["Respiration", "Transpiration", "Photosynthesis", "Osmosis"],
                "correct": 1
            },
            {
                "question": "Who is credited with developing the theory of relativity?",
                "options": ["Albert Einstein", "Isaac Newton", "Galileo Galilei", "Stephen Hawking"],
                "correct": 0
            },
            {
                "question": "Who discovered the neutron?",
                "options": ["Ernest Rutherford", "James Chadwick", "Niels Bohr", "Enrico Fermi"],
                "correct": 1,
                "explanation": "James Chadwick identified the neutron in 1932."
            },
            {
                "question": "What is the name of the Indian satellite series used for communication?",
                "options": ["INSAT", "IRS", "EDUSAT", "CARTOSAT"],
                "correct": 0
            }
        ]
    },
    "mixed-knowledge": {
        "title": "Mixed Knowledge Special",
        "description": "Variety questions from different topics!",
        "duration_seconds": 90,
        "questions": [
            {
                "question": "Which is the smallest state in India by area?",
                "options": ["Goa", "Sikkim", "Tripura", "Mizoram"],
                "correct": 0
            },
            {
                "question": "What is the capital of Karnataka?",
                "options": ["Bengaluru", "Mysuru", "Mangaluru", "Hubli"],
                "correct": 0
            },
            {
                "question": "Which Indian festival is known as the festival of colors?",
                "options": ["Holi", "Diwali", "Dussehra", "Navratri"],
                "correct": 0
            },
            {
                "question": "Who is known as the 'Missile Man of India'?",
                "options": ["A.P.J. Abdul Kalam", "Vikram Sarabhai", "Homi Bhabha", "Satish Dhawan"],
                "correct": 0
            }
        ]
    }
}
