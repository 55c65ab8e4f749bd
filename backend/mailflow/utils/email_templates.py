"""Jinja2 email templates

Two sets live here:
- TEMPLATE_COMPONENTS: full branded templates, addressed by the component_ref
  stored on EmailTemplate rows.
- FALLBACK_TEMPLATES: small standalone templates keyed by email type, used when
  no active EmailTemplate row exists or its component fails to render.
"""
from jinja2 import DictLoader, Environment, select_autoescape

from mailflow.core.config import settings

_BUTTON = (
    "display: inline-block; background: {color}; color: white; padding: 12px 32px; "
    "text-decoration: none; border-radius: 6px; margin-top: 24px; font-weight: 600;"
)

LAYOUT = """<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <title>{% block title %}CloudDojo{% endblock %}</title>
  </head>
  <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px; background: #f3f4f6;">
    <div style="background: linear-gradient(135deg, {% block accent %}#6366f1, #8b5cf6{% endblock %}); padding: 40px; border-radius: 12px; text-align: center; color: white;">
      {% block hero %}{% endblock %}
    </div>
    <div style="background: white; padding: 32px; border-radius: 12px; margin-top: 24px; box-shadow: 0 2px 8px rgba(0,0,0,0.1);">
      {% block content %}{% endblock %}
    </div>
    <div style="text-align: center; margin-top: 24px; color: #9ca3af; font-size: 12px;">
      <p>You're receiving this email because you have a CloudDojo account.</p>
      <a href="{{ frontend_url }}/settings/preferences" style="color: #6b7280; text-decoration: underline;">Manage preferences</a>
    </div>
  </body>
</html>
"""

COMPONENT_SOURCES = {
    "emails/welcome.html": """{% extends "layout.html" %}
{% block title %}Welcome to CloudDojo{% endblock %}
{% block hero %}
<h1 style="margin: 0; font-size: 32px;">Welcome to CloudDojo, {{ username }}! 🚀</h1>
{% endblock %}
{% block content %}
<p>We're excited to have you on board!</p>
<p>Practice exams, AI readiness analysis and progress tracking are waiting for you. Start your cloud certification journey today.</p>
<a href="{{ frontend_url }}/dashboard" style="%(indigo)s">Get Started</a>
{% endblock %}
""",
    "emails/quiz_basic.html": """{% extends "layout.html" %}
{% block title %}Quiz Completed{% endblock %}
{% block hero %}
<h1 style="margin: 0; font-size: 32px;">Great progress, {{ username }}! 🎯</h1>
{% endblock %}
{% block content %}
<p>You completed {% if quizTitle %}"{{ quizTitle }}"{% else %}a quiz{% endif %} with a score of <strong>{{ score }}%</strong>.</p>
<a href="{{ frontend_url }}/dashboard" style="%(indigo)s">Continue Learning</a>
{% endblock %}
""",
    "emails/perfect_score.html": """{% extends "layout.html" %}
{% block title %}Perfect Score!{% endblock %}
{% block accent %}#f59e0b, #ef4444{% endblock %}
{% block hero %}
<div style="font-size: 64px; margin-bottom: 16px;">🔥</div>
<h1 style="margin: 0; font-size: 32px;">Perfect Score! You're on fire!</h1>
{% endblock %}
{% block content %}
<p>Congratulations {{ username }}! You scored 100% on "{{ quizTitle }}"!</p>
<p>This is an outstanding achievement. Keep up the excellent work!</p>
<a href="{{ frontend_url }}/dashboard" style="%(red)s">Take Another Quiz</a>
{% endblock %}
""",
    "emails/ai_analysis_notification.html": """{% extends "layout.html" %}
{% block title %}AI Analysis Ready{% endblock %}
{% block accent %}#8b5cf6, #6366f1{% endblock %}
{% block hero %}
<h1 style="margin: 0; font-size: 32px;">Your AI Analysis is Ready! 📊</h1>
{% endblock %}
{% block content %}
<p>Hi {{ username }},</p>
<p>Your {{ certificationName }} readiness analysis is now available.</p>
<p style="font-size: 24px;"><strong>Readiness Score: {{ readinessScore }}%</strong></p>
<a href="{{ frontend_url }}/analysis" style="%(violet)s">View Analysis</a>
{% endblock %}
""",
    "emails/inactive.html": """{% extends "layout.html" %}
{% block title %}{{ headline }}{% endblock %}
{% block hero %}
<h1 style="margin: 0; font-size: 28px;">{{ headline }}</h1>
{% endblock %}
{% block content %}
<p>Hi {{ username }},</p>
<p>{{ body }}</p>
<a href="{{ frontend_url }}/dashboard" style="%(indigo)s">{{ cta }}</a>
{% endblock %}
""",
    "emails/weekly_progress.html": """{% extends "layout.html" %}
{% block title %}Weekly Progress Report{% endblock %}
{% block hero %}
<h1 style="margin: 0; font-size: 32px;">Your Weekly Progress Report 📈</h1>
{% endblock %}
{% block content %}
<p>Hi {{ username }}, here's your weekly summary:</p>
<ul>
  <li>Quizzes completed: {{ quizzesCompleted | default(0) }}</li>
  <li>Average score: {{ averageScore | default(0) }}%</li>
  <li>XP earned: {{ xpEarned | default(0) }}</li>
</ul>
<a href="{{ frontend_url }}/dashboard" style="%(indigo)s">View Dashboard</a>
{% endblock %}
""",
    "emails/monthly_certification_readiness.html": """{% extends "layout.html" %}
{% block title %}{{ certificationName }} Readiness Report{% endblock %}
{% block accent %}#0ea5e9, #3b82f6{% endblock %}
{% block hero %}
<div style="font-size: 64px; margin-bottom: 16px;">📊</div>
<h1 style="margin: 0; font-size: 32px;">Your {{ certificationName }} Readiness Report</h1>
<p style="font-size: 18px; margin-top: 8px;">Hi {{ username }}, here's your monthly progress update!</p>
{% endblock %}
{% block content %}
<div style="text-align: center; padding: 24px; background: #eff6ff; border-radius: 12px; margin-bottom: 24px;">
  <div style="font-size: 14px; text-transform: uppercase;">Readiness Score</div>
  <div style="font-size: 56px; font-weight: bold; color: #3b82f6;">{{ readinessScore }}%</div>
  <div style="font-size: 14px;">
    {% if readinessScore is number and readinessScore >= 80 %}You're ready to take the exam!
    {% elif readinessScore is number and readinessScore >= 60 %}Almost there! Keep practicing.
    {% else %}Keep studying - you're making progress!{% endif %}
  </div>
</div>
<p>Quizzes completed: <strong>{{ quizzesCompleted | default(0) }}</strong> &middot; Average score: <strong>{{ averageScore | default(0) }}%</strong></p>
{% if strengths %}
<h3>💪 Your Strengths</h3>
<ul>{% for item in strengths %}<li><strong>{{ item }}</strong></li>{% endfor %}</ul>
{% endif %}
{% if weaknesses %}
<h3>🎯 Areas to Focus On</h3>
<ul>{% for item in weaknesses %}<li><strong>{{ item }}</strong></li>{% endfor %}</ul>
{% endif %}
{% if recommendations %}
<h3>💡 Recommendations</h3>
<ul>{% for item in recommendations %}<li>{{ item }}</li>{% endfor %}</ul>
{% endif %}
<a href="{{ frontend_url }}/dashboard" style="%(blue)s">Continue Your Journey</a>
<p style="color: #6b7280; font-size: 14px;">Next report: {{ nextReportDate | default("Next month", true) }}</p>
{% endblock %}
""",
    "emails/quiz_milestone.html": """{% extends "layout.html" %}
{% block title %}{{ quizCount }} Quizzes Completed!{% endblock %}
{% block hero %}
<h1 style="margin: 0; font-size: 32px;">🎯 {{ quizCount }} Quizzes Completed!</h1>
<p style="font-size: 18px; margin-top: 8px;">You're unstoppable, {{ username }}!</p>
{% endblock %}
{% block content %}
<h2 style="color: #1f2937;">Your Progress Dashboard</h2>
<p>Quizzes completed: <strong>{{ quizCount }}</strong></p>
<p>Average score: <strong>{{ averageScore }}%</strong></p>
{% if topCategory %}<p>Your top category: <strong style="color: #6366f1;">{{ topCategory }}</strong></p>{% endif %}
{% if nextMilestone %}<p>Next milestone: <strong>{{ nextMilestone }} quizzes</strong></p>{% endif %}
<a href="{{ frontend_url }}/dashboard" style="%(indigo)s">Continue Learning</a>
{% endblock %}
""",
    "emails/badge_unlocked.html": """{% extends "layout.html" %}
{% block title %}Badge Unlocked: {{ badgeName }}!{% endblock %}
{% block accent %}#eab308, #f59e0b{% endblock %}
{% block hero %}
<div style="font-size: 64px; margin-bottom: 16px;">{{ badgeIcon | default("🏆", true) }}</div>
<h1 style="margin: 0; font-size: 32px;">Badge Unlocked!</h1>
<p style="font-size: 24px; margin-top: 8px; font-weight: bold;">{{ badgeName }}</p>
{% endblock %}
{% block content %}
<p>{{ badgeDescription }}</p>
{% if totalBadges %}<p>Total badges unlocked: <strong>{{ totalBadges }}</strong></p>{% endif %}
<a href="{{ frontend_url }}/profile" style="%(amber)s">View Profile</a>
{% endblock %}
""",
    "emails/streak_milestone.html": """{% extends "layout.html" %}
{% block title %}{{ currentStreak }}-Day Streak!{% endblock %}
{% block accent %}#f59e0b, #ef4444{% endblock %}
{% block hero %}
<div style="font-size: 64px; margin-bottom: 16px;">🔥</div>
<h1 style="margin: 0; font-size: 32px;">{{ currentStreak }}-Day Streak!</h1>
<p style="font-size: 18px; margin-top: 8px;">You're on fire, {{ username }}!</p>
{% endblock %}
{% block content %}
<h2 style="color: #1f2937;">Your Consistency is Paying Off!</h2>
<p>Current streak: <strong>{{ currentStreak }}</strong> &middot; Longest streak: <strong>{{ longestStreak }}</strong></p>
{% if totalXP %}<p>Total XP: <strong style="color: #f59e0b;">{{ totalXP }}</strong></p>{% endif %}
<a href="{{ frontend_url }}/dashboard" style="%(red)s">Keep the Streak Going!</a>
{% endblock %}
""",
    "emails/level_up.html": """{% extends "layout.html" %}
{% block title %}Level Up! Level {{ newLevel }}{% endblock %}
{% block hero %}
<h1 style="margin: 0; font-size: 32px;">Level Up! ⚡</h1>
<p style="font-size: 18px; margin-top: 8px;">You're now Level {{ newLevel }}, {{ username }}!</p>
{% endblock %}
{% block content %}
<h2 style="color: #1f2937;">Congratulations!</h2>
{% if totalXP %}<p>Total XP: <strong style="color: #6366f1;">{{ totalXP }}</strong></p>{% endif %}
{% if xpToNextLevel %}<p style="font-size: 14px; color: #9ca3af;">{{ xpToNextLevel }} XP to the next level</p>{% endif %}
{% if unlockedFeatures %}
<h3 style="color: #1f2937; font-size: 18px;">New Features Unlocked:</h3>
<ul>{% for feature in unlockedFeatures %}<li>{{ feature }}</li>{% endfor %}</ul>
{% endif %}
<a href="{{ frontend_url }}/dashboard" style="%(indigo)s">View Dashboard</a>
{% endblock %}
""",
    "emails/feature_adoption.html": """{% extends "layout.html" %}
{% block title %}Unlock {{ featureName }}{% endblock %}
{% block accent %}#10b981, #059669{% endblock %}
{% block hero %}
<div style="font-size: 64px; margin-bottom: 16px;">{{ featureIcon | default("💡", true) }}</div>
<h1 style="margin: 0; font-size: 32px;">Unlock {{ featureName }}</h1>
<p style="font-size: 18px; margin-top: 8px;">You're Missing Out!</p>
{% endblock %}
{% block content %}
<h2 style="color: #1f2937;">{{ featureName }}</h2>
<p>{{ featureDescription }}</p>
{% if featureBenefits %}
<h3 style="color: #1f2937; font-size: 18px;">Benefits:</h3>
<ul>{% for benefit in featureBenefits %}<li>{{ benefit }}</li>{% endfor %}</ul>
{% endif %}
<a href="{{ ctaUrl | default(frontend_url ~ '/dashboard', true) }}" style="%(green)s">Get Started</a>
{% endblock %}
""",
}

FALLBACK_SOURCES = {
    "welcome": """<h1 style="color: #6366f1;">Welcome to CloudDojo, {{ username }}! 🚀</h1>
<p>We're excited to have you on board!</p>
<p>Start your cloud certification journey today.</p>
<a href="{{ frontend_url }}/dashboard">Get Started</a>""",
    "quiz_basic": """<h1 style="color: #6366f1;">Great progress, {{ username }}! 🎯</h1>
<p>You've completed a quiz with a score of {{ score }}%!</p>
<a href="{{ frontend_url }}/dashboard">Continue Learning</a>""",
    "perfect_score": """<h1 style="color: #ef4444;">Perfect Score! You're on fire! 🔥</h1>
<p>Congratulations {{ username }}! You scored 100% on "{{ quizTitle }}"!</p>
<a href="{{ frontend_url }}/dashboard">Take Another Quiz</a>""",
    "ai_analysis_notification": """<h1 style="color: #8b5cf6;">Your AI Analysis is Ready! 📊</h1>
<p>Hi {{ username }},</p>
<p>Your {{ certificationName }} readiness analysis is now available!</p>
<p><strong>Readiness Score: {{ readinessScore }}%</strong></p>
<a href="{{ frontend_url }}/analysis">View Analysis</a>""",
    "inactive_3day": """<h1 style="color: #6366f1;">We miss you! Come back and practice 📚</h1>
<p>Hi {{ username }},</p>
<p>It's been a few days since your last visit. Your learning progress is waiting for you!</p>
<a href="{{ frontend_url }}/dashboard">Continue Learning</a>""",
    "inactive_7day": """<h1 style="color: #6366f1;">Your progress is waiting for you 💪</h1>
<p>Hi {{ username }},</p>
<p>Don't lose your momentum! Come back and continue your cloud certification journey.</p>
<a href="{{ frontend_url }}/dashboard">Resume Learning</a>""",
    "inactive_14day": """<h1 style="color: #6366f1;">Last chance to continue your journey 🎓</h1>
<p>Hi {{ username }},</p>
<p>We noticed you haven't been active for 2 weeks. Don't let your progress go to waste!</p>
<a href="{{ frontend_url }}/dashboard">Come Back</a>""",
    "weekly_progress": """<h1 style="color: #6366f1;">Your Weekly Progress Report 📈</h1>
<p>Hi {{ username }},</p>
<ul>
  <li>Quizzes completed: {{ quizzesCompleted | default(0) }}</li>
  <li>Average score: {{ averageScore | default(0) }}%</li>
  <li>XP earned: {{ xpEarned | default(0) }}</li>
</ul>
<a href="{{ frontend_url }}/dashboard">View Dashboard</a>""",
    "monthly_certification_readiness": """<h1 style="color: #3b82f6;">Your {{ certificationName }} Readiness Report 📊</h1>
<p>Hi {{ username }}, your readiness score is <strong>{{ readinessScore }}%</strong>.</p>
{% if recommendations %}<ul>{% for item in recommendations %}<li>{{ item }}</li>{% endfor %}</ul>{% endif %}
<p>Next report: {{ nextReportDate | default("Next month", true) }}</p>
<a href="{{ frontend_url }}/dashboard">Continue Your Journey</a>""",
    "quiz_milestone": """<h1 style="color: #6366f1;">🎯 {{ quizCount }} Quizzes Completed!</h1>
<p>You're unstoppable, {{ username }}! Average score: {{ averageScore }}%.</p>
{% if topCategory %}<p>Your top category: <strong>{{ topCategory }}</strong></p>{% endif %}
<a href="{{ frontend_url }}/dashboard">Continue Learning</a>""",
    "badge_unlocked": """<h1 style="color: #eab308;">{{ badgeIcon | default("🏆", true) }} Badge Unlocked: {{ badgeName }}!</h1>
<p>{{ badgeDescription }}</p>
<a href="{{ frontend_url }}/profile">View Profile</a>""",
    "streak_milestone": """<h1 style="color: #f59e0b;">🔥 {{ currentStreak }}-Day Streak!</h1>
<p>You're on fire, {{ username }}! Longest streak: {{ longestStreak }}.</p>
<a href="{{ frontend_url }}/dashboard">Keep the Streak Going!</a>""",
    "level_up": """<h1 style="color: #6366f1;">Level Up! You're now Level {{ newLevel }}! ⚡</h1>
<p>Congratulations {{ username }}!</p>
<a href="{{ frontend_url }}/dashboard">View Dashboard</a>""",
    "feature_adoption": """<h1 style="color: #10b981;">{{ featureIcon | default("💡", true) }} Unlock {{ featureName }}</h1>
<p>{{ featureDescription }}</p>
<a href="{{ ctaUrl | default(frontend_url ~ '/dashboard', true) }}">Get Started</a>""",
}

FALLBACK_WRAPPER = """<!DOCTYPE html>
<html>
  <head><meta charset="utf-8"></head>
  <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
    {% block body %}{% endblock %}
  </body>
</html>
"""

# Copy shared to the three inactivity components
INACTIVE_CONTEXT = {
    "inactive_3day": {
        "headline": "We miss you! Come back and practice 📚",
        "body": "It's been a few days since your last visit. Your learning progress is waiting for you!",
        "cta": "Continue Learning",
    },
    "inactive_7day": {
        "headline": "Your progress is waiting for you 💪",
        "body": "Don't lose your momentum! Come back and continue your cloud certification journey.",
        "cta": "Resume Learning",
    },
    "inactive_14day": {
        "headline": "Last chance to continue your journey 🎓",
        "body": "We noticed you haven't been active for 2 weeks. Don't let your progress go to waste!",
        "cta": "Come Back",
    },
}

# component_ref -> (template name, fixed context merged under the caller's data)
TEMPLATE_COMPONENTS = {
    "welcome": ("emails/welcome.html", {}),
    "quiz_basic": ("emails/quiz_basic.html", {}),
    "perfect_score": ("emails/perfect_score.html", {}),
    "ai_analysis_notification": ("emails/ai_analysis_notification.html", {}),
    "inactive_3day": ("emails/inactive.html", INACTIVE_CONTEXT["inactive_3day"]),
    "inactive_7day": ("emails/inactive.html", INACTIVE_CONTEXT["inactive_7day"]),
    "inactive_14day": ("emails/inactive.html", INACTIVE_CONTEXT["inactive_14day"]),
    "weekly_progress": ("emails/weekly_progress.html", {}),
    "monthly_certification_readiness": ("emails/monthly_certification_readiness.html", {}),
    "quiz_milestone": ("emails/quiz_milestone.html", {}),
    "badge_unlocked": ("emails/badge_unlocked.html", {}),
    "streak_milestone": ("emails/streak_milestone.html", {}),
    "level_up": ("emails/level_up.html", {}),
    "feature_adoption": ("emails/feature_adoption.html", {}),
}

# email type -> fallback template name
FALLBACK_TEMPLATES = {email_type: f"fallback/{email_type}.html" for email_type in FALLBACK_SOURCES}


def _button_styles() -> dict:
    return {
        "indigo": _BUTTON.format(color="#6366f1"),
        "violet": _BUTTON.format(color="#8b5cf6"),
        "red": _BUTTON.format(color="#ef4444"),
        "amber": _BUTTON.format(color="#f59e0b"),
        "green": _BUTTON.format(color="#10b981"),
        "blue": _BUTTON.format(color="#3b82f6"),
    }


def _build_sources() -> dict:
    styles = _button_styles()
    sources = {"layout.html": LAYOUT, "fallback/base.html": FALLBACK_WRAPPER}
    for name, source in COMPONENT_SOURCES.items():
        for color, style in styles.items():
            source = source.replace(f"%({color})s", style)
        sources[name] = source
    for email_type, source in FALLBACK_SOURCES.items():
        sources[FALLBACK_TEMPLATES[email_type]] = (
            '{% extends "fallback/base.html" %}{% block body %}' + source + '{% endblock %}'
        )
    return sources


template_env = Environment(
    loader=DictLoader(_build_sources()),
    autoescape=select_autoescape(["html", "xml"], default_for_string=True),
    trim_blocks=True,
    lstrip_blocks=True
)
template_env.globals["frontend_url"] = settings.FRONTEND_URL
