"""Badge rule evaluation."""

from learnhub.progress.badges import (
    ALL_TOPICS_BADGE,
    BEGINNER_BADGE,
    BOOKWORM_BADGE,
    PERFECT_SCORE_BADGE,
    PERFECTIONIST_BADGE,
    QUIZ_MASTER_BADGE,
    WEEK_WARRIOR_BADGE,
    BadgeFacts,
    evaluate_badges,
)


class TestEvaluateBadges:
    def test_no_facts_no_badges(self):
        assert evaluate_badges([], BadgeFacts()) == []

    def test_beginner_at_three_lessons(self):
        assert evaluate_badges([], BadgeFacts(lesson_count=2)) == []
        assert evaluate_badges([], BadgeFacts(lesson_count=3)) == [BEGINNER_BADGE]

    def test_bookworm_at_twenty_lessons(self):
        badges = evaluate_badges([], BadgeFacts(lesson_count=20))
        assert badges == [BEGINNER_BADGE, BOOKWORM_BADGE]

    def test_perfect_score_and_quiz_master(self):
        assert evaluate_badges([], BadgeFacts(perfect_quiz_count=1)) == [PERFECT_SCORE_BADGE]
        badges = evaluate_badges([], BadgeFacts(perfect_quiz_count=10))
        assert QUIZ_MASTER_BADGE in badges

    def test_week_warrior_at_seven_days(self):
        assert WEEK_WARRIOR_BADGE not in evaluate_badges([], BadgeFacts(current_streak=6))
        assert WEEK_WARRIOR_BADGE in evaluate_badges([], BadgeFacts(current_streak=7))

    def test_perfectionist_at_five_in_a_row(self):
        assert PERFECTIONIST_BADGE not in evaluate_badges([], BadgeFacts(perfect_quiz_streak=4))
        assert PERFECTIONIST_BADGE in evaluate_badges([], BadgeFacts(perfect_quiz_streak=5))

    def test_all_topics_needs_every_category(self):
        assert ALL_TOPICS_BADGE not in evaluate_badges(
            [], BadgeFacts(completed_categories=2, total_categories=3)
        )
        assert ALL_TOPICS_BADGE in evaluate_badges(
            [], BadgeFacts(completed_categories=3, total_categories=3)
        )

    def test_all_topics_not_granted_without_categories(self):
        assert evaluate_badges([], BadgeFacts(completed_categories=0, total_categories=0)) == []

    def test_badges_are_never_removed(self):
        earned = [PERFECTIONIST_BADGE, WEEK_WARRIOR_BADGE]
        assert evaluate_badges(earned, BadgeFacts()) == earned

    def test_no_duplicates(self):
        badges = evaluate_badges([BEGINNER_BADGE], BadgeFacts(lesson_count=5))
        assert badges.count(BEGINNER_BADGE) == 1

    def test_input_list_not_mutated(self):
        earned: list[str] = []
        evaluate_badges(earned, BadgeFacts(lesson_count=3))
        assert earned == []
