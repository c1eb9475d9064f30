"""
Quiz results as CSV: one row per submitted attempt, with each question's answer
text read from either stored answer format.
"""
import csv
import io

from django.conf import settings

from quizzes.grading import convert_current_to_legacy, normalize_answers


class ExportService:
    @staticmethod
    def _format_dt(value):
        date_format = settings.QUIZ_SETTINGS.get('EXPORT_DATE_FORMAT', '%Y-%m-%d %H:%M:%S')
        return value.strftime(date_format) if value else ''

    @classmethod
    def export_quiz_results(cls, quiz, attempts):
        """One row per attempt, one column per question holding the raw answer text."""
        output = io.StringIO()
        writer = csv.writer(output)

        questions = list(quiz.questions.order_by('order_index', 'id'))

        header = ['Student', 'Email', 'Score', 'Max Score', 'Started At', 'Submitted At']
        for index, question in enumerate(questions, 1):
            header.append(f'Q{index} ({question.points}pts)')
        writer.writerow(header)

        for attempt in attempts:
            answers = convert_current_to_legacy(normalize_answers(attempt.answers))
            row = [
                attempt.student.username,
                attempt.student.email,
                float(attempt.score) if attempt.score is not None else '',
                float(attempt.max_score) if attempt.max_score is not None else '',
                cls._format_dt(attempt.started_at),
                cls._format_dt(attempt.submitted_at),
            ]
            row.extend(answers.get(str(q.id)) or '' for q in questions)
            writer.writerow(row)

        return output.getvalue()
