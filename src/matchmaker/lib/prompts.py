def match_explanation_prompt(
    a_name: str,
    a_likes: list[str],
    b_name: str,
    b_likes: list[str],
) -> str:
    """Prompt asking the model why two profiles would be a good match."""
    return "\n\n".join(
        [
            "You are a friendly match assistant.",
            f"Explain in 2-3 short paragraphs why {a_name} and {b_name} "
            "would be a good match based on these likes:",
            f"{a_name}: {', '.join(a_likes)}",
            f"{b_name}: {', '.join(b_likes)}",
            "Keep the tone positive and mention common interests.",
        ]
    )
