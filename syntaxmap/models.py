from sqlalchemy import (
    Column, String, Integer, Float, Boolean, Text, Date, DateTime, ForeignKey, text,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()

# every entity id is a VARCHAR(40) holding a uuid4 string
ID = String(40)


class User(Base):
    __tablename__ = "user_table"

    user_id = Column(ID, primary_key=True)
    user_name = Column(String(100))
    user_email_address = Column(String(255), unique=True, nullable=False)
    user_password = Column(Text, nullable=False)
    user_role = Column(Integer, nullable=False, server_default=text("3"))
    is_account_active = Column(Boolean, nullable=False, server_default=text("true"))
    last_session = Column(Text)
    created_at = Column(DateTime, server_default=func.now())


class Tense(Base):
    __tablename__ = "tense_table"

    id = Column(ID, primary_key=True)
    tense_name = Column(String(100), unique=True, nullable=False)
    tense_description = Column(Text)
    time_group = Column(String(20))
    subcategory = Column(String(50))
    grammar_rules = Column(Text)
    example_structure = Column(Text)
    usage_notes = Column(Text)
    difficulty_level = Column(Integer, server_default=text("3"))
    active = Column(Boolean, server_default=text("true"))


class Example(Base):
    __tablename__ = "example_table"

    id = Column(ID, primary_key=True)
    example_text = Column(Text, nullable=False)
    tense_id = Column(ID, ForeignKey("tense_table.id"), nullable=False)
    difficulty_level = Column(Integer, server_default=text("2"))
    student_submission = Column(Boolean, server_default=text("false"))
    teacher_reviewed = Column(Boolean, server_default=text("false"))
    reviewer_id = Column(ID)
    review_date = Column(DateTime)
    submitter_id = Column(ID)
    submitted_date = Column(DateTime, server_default=func.now())
    user_id = Column(ID)
    shared_with_teacher = Column(Boolean, server_default=text("false"))
    sentence_type = Column(String(20), server_default=text("'affirmative'"))
    teacher_feedback = Column(Text)
    created_at = Column(DateTime, server_default=func.now())


class QuizItem(Base):
    __tablename__ = "quiz_table"

    id = Column(ID, primary_key=True)
    tense_id = Column(ID, ForeignKey("tense_table.id"), nullable=False)
    question = Column(Text, nullable=False)
    options = Column(JSONB)
    correct_answer = Column(Text)


class QuizDetails(Base):
    __tablename__ = "quiz_details"

    id = Column(ID, primary_key=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    tense_id = Column(ID, ForeignKey("tense_table.id"))
    difficulty_level = Column(Integer, nullable=False)
    time_per_question = Column(Integer, nullable=False)
    number_of_questions = Column(Integer, nullable=False)
    status = Column(String(10), server_default=text("'inactive'"))
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now())


class Question(Base):
    __tablename__ = "question_table"

    question_id = Column(Integer, primary_key=True, autoincrement=True)
    question_title = Column(Text, nullable=False)
    answer_title_a = Column(Text)
    answer_title_b = Column(Text)
    answer_title_c = Column(Text)
    answer_title_d = Column(Text)
    right_answer = Column(String(1))
    explanation = Column(Text)
    online_exam_ids = Column(ARRAY(Integer))
    verified = Column(Boolean, server_default=text("true"))
    quiz_details_id = Column(ID, ForeignKey("quiz_details.id", ondelete="CASCADE"))


class QuizPerformance(Base):
    __tablename__ = "quiz_performance"

    id = Column(ID, primary_key=True)
    quiz_details_id = Column(ID, ForeignKey("quiz_details.id", ondelete="CASCADE"))
    tense_id = Column(ID, ForeignKey("tense_table.id", ondelete="CASCADE"))
    user_id = Column(ID)
    total_questions = Column(Integer, nullable=False)
    correct_answers = Column(Integer, server_default=text("0"))
    incorrect_answers = Column(Integer, server_default=text("0"))
    total_time_taken = Column(Float, server_default=text("0"))
    avg_time_per_question = Column(Float, server_default=text("0"))
    incorrect_question_data = Column(JSONB)
    missed_questions = Column(JSONB)
    created_at = Column(DateTime, server_default=func.now())


class UserProgress(Base):
    __tablename__ = "user_progress"

    id = Column(ID, primary_key=True)
    user_id = Column(ID, nullable=False)
    tense_id = Column(ID, ForeignKey("tense_table.id", ondelete="CASCADE"), nullable=False)
    completion_percentage = Column(Integer, server_default=text("0"))
    quiz_avg_score = Column(Float, server_default=text("0"))
    quiz_count = Column(Integer, server_default=text("0"))
    examples_submitted = Column(Integer, server_default=text("0"))
    examples_correct = Column(Integer, server_default=text("0"))
    is_completed = Column(Boolean, server_default=text("false"))
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now())


class Achievement(Base):
    __tablename__ = "user_achievements"

    id = Column(ID, primary_key=True)
    user_id = Column(ID, nullable=False)
    achievement_type = Column(String(50), nullable=False)
    achievement_name = Column(String(100))
    achievement_description = Column(Text)
    achievement_level = Column(Integer, server_default=text("1"))
    achieved_at = Column(DateTime, server_default=func.now())


class LearningActivity(Base):
    __tablename__ = "learning_activity"

    id = Column(ID, primary_key=True)
    user_id = Column(ID, nullable=False)
    session_date = Column(Date, nullable=False)
    total_time_spent = Column(Integer, server_default=text("0"))
    tenses_practiced = Column(JSONB)
    activities_completed = Column(JSONB)
    streak_days = Column(Integer, server_default=text("1"))
    created_at = Column(DateTime, server_default=func.now())


class Notification(Base):
    __tablename__ = "notification_table"

    notification_id = Column(ID, primary_key=True)
    user_id = Column(ID, nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(50), nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    is_read = Column(Boolean, server_default=text("false"))


class DictionaryEntry(Base):
    __tablename__ = "user_dictionnary"

    word_id = Column(Integer, primary_key=True, autoincrement=True)
    word = Column(String(100), nullable=False)
    definition = Column(Text)
    part_of_speech = Column(String(50))
    pronunciation = Column(String(100))
    user_id = Column(ID)
    session_name = Column(String(100))
    learned = Column(Boolean, server_default=text("false"))
    created_at = Column(DateTime, server_default=func.now())


class Assessment(Base):
    __tablename__ = "assessments"

    id = Column(ID, primary_key=True)
    teacher_id = Column(ID, nullable=False)
    student_id = Column(ID, nullable=False)
    tense_id = Column(ID, ForeignKey("tense_table.id", ondelete="SET NULL"))
    score = Column(Float)
    feedback = Column(Text, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class MistakeQuestion(Base):
    __tablename__ = "mistake_question"

    mistake_id = Column(ID, primary_key=True)
    user_id = Column(ID, nullable=False)
    question_id = Column(Integer)
    question_title = Column(Text)
    user_answer = Column(Text)
    right_answer = Column(Text)
    tense_id = Column(ID)
    created_at = Column(DateTime, server_default=func.now())


class LearningGoal(Base):
    __tablename__ = "learning_goal"

    id = Column(ID, primary_key=True)
    user_id = Column(ID, nullable=False)
    description = Column(Text, nullable=False)
    type = Column(String(50), nullable=False)
    target = Column(Integer, nullable=False, server_default=text("100"))
    deadline = Column(Date)
    progress = Column(Integer, nullable=False, server_default=text("0"))
    completed = Column(Boolean, nullable=False, server_default=text("false"))
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now())
