from .quiz import QuestionView, QuizApp

__all__ = ["QuizApp", "QuestionView"]
