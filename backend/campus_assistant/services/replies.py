"""Fixed reply texts"""

FEEDBACK_FORMAT_EXAMPLE = (
    "Example: ⭐⭐⭐⭐⭐ Very helpful!\n"
    "\n"
    "Or: 4/5 Good directions but could be clearer"
)


def _plural(n: int, word: str = "credit") -> str:
    return f"{n} {word}" if n == 1 else f"{n} {word}s"


def welcome(credits: int, cost: int) -> str:
    return (
        "👋 Welcome to UEW Campus Assistant!\n"
        "\n"
        "I'm here to help you with:\n"
        "📍 Campus navigation & directions\n"
        "❓ University information & FAQs\n"
        "📰 Latest news & announcements\n"
        "\n"
        f"You have {_plural(credits, 'free credit')} to get started!\n"
        "\n"
        f"Each question costs {_plural(cost)}. You can earn more credits by "
        "⭐ giving feedback after I help you.\n"
        "\n"
        "Ready to explore? Ask me anything!\n"
        'Example: "How do I get to the library?"'
    )


def no_credits(credits_per_feedback: int) -> str:
    return (
        "😔 You're out of credits!\n"
        "\n"
        f"🌟 Earn {_plural(credits_per_feedback)} by giving feedback:\n"
        "Simply rate my last response (1-5 stars) and add a short comment.\n"
        "\n"
        'Example: "⭐⭐⭐⭐⭐ Very helpful, found the library easily!"\n'
        "\n"
        "Or just type: FEEDBACK"
    )


def feedback_prompt(min_length: int | None = None) -> str:
    lines = ["Please rate your experience with stars (1-5) and a comment:", "", FEEDBACK_FORMAT_EXAMPLE]
    if min_length:
        lines += ["", f"(Comments need at least {min_length} characters.)"]
    return "\n".join(lines)


def feedback_thanks(rating: int, earned: int, balance: int) -> str:
    return (
        "🎉 Thank you for your feedback!\n"
        "\n"
        f"Rating: {'⭐' * int(rating)}\n"
        f"Credits earned: +{earned}\n"
        f"Your new balance: {_plural(balance)}\n"
        "\n"
        "Your feedback helps us improve! 🙏"
    )


def greeting(credits: int) -> str:
    return (
        f"Hello! 👋 I'm your UEW campus assistant. You have {_plural(credits)} available.\n"
        "\n"
        "How can I help you today?"
    )


def help_text(cost: int) -> str:
    return (
        "🤖 *How to Use UEW Campus Assistant*\n"
        "\n"
        "📍 *Navigation:*\n"
        '- "How do I get to the library?"\n'
        '- "I\'m at Aggrey Hall, need to go to North Campus"\n'
        '- "Where is the SRC office?"\n'
        "\n"
        "❓ *Information:*\n"
        '- "What departments does UEW have?"\n'
        '- "When does the library close?"\n'
        "\n"
        "⭐ *Earn Credits:*\n"
        '- Give feedback: "⭐⭐⭐⭐⭐ Great help!"\n'
        "\n"
        "💡 *Tips:*\n"
        f"- Each question uses {_plural(cost)}\n"
        "- You can earn credits through feedback\n"
        "\n"
        "What would you like to know?"
    )


FALLBACK_OTHER = (
    "I'm not sure how to help with that. Try asking about campus locations or university information!"
)

NAVIGATION_PROMPT = (
    "I'd love to help you navigate! Please tell me where you want to go.\n"
    "\n"
    "Example: 'How do I get to the library?'"
)

ANSWER_UNAVAILABLE = "I'm having trouble processing your question right now. Please try again later."

APOLOGY = "Sorry, something went wrong while handling your message. Please try again in a moment."
