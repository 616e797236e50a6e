import random
from textwrap import dedent
from typing import Optional, Tuple

# Candidate sets for the image prompt. Kept as data so they can be extended
# and so a seeded random source makes prompt selection reproducible.
BACKGROUND_SETTINGS: Tuple[str, ...] = (
    "Peaceful minimalist yoga studio with soft morning light and wooden floors",
    "Serene outdoor deck overlooking a calm ocean at sunrise",
    "Quiet forest clearing with dappled sunlight filtering through trees",
    "Spacious, modern living room with large windows and indoor plants",
    "Zen garden with sand, stones, and bamboo background",
    "Clean, professional white studio background with soft lighting",
)

INSTRUCTOR_TYPES: Tuple[str, ...] = (
    "fit female yoga instructor",
    "fit male yoga instructor",
    "focused yoga practitioner",
)

AILMENT_SUGGESTIONS: Tuple[str, ...] = ("Migraine", "Stiff Neck", "Sciatica", "Stress")

DISCLAIMER = (
    "Disclaimer: This is an AI-generated recommendation. Please consult a healthcare "
    "professional before starting any new exercise routine, especially if you have a "
    "medical condition."
)


def _single_line(text: str) -> str:
    return " ".join(text.split())


def get_recommendation_prompt(ailment: str) -> str:
    return dedent(
        f"""\
        Recommend a yoga sequence for someone suffering from "{_single_line(ailment)}".
        Provide a brief, comforting overview and 3-4 specific poses.
        For each pose, provide clear steps, do's, and don'ts.
        IMPORTANT: Provide a very detailed visual description of the body's position for the
        'description' field, as this will be used to generate an image."""
    )


def choose_image_styling(rng: Optional[random.Random] = None) -> Tuple[str, str]:
    """Pick a background setting and an instructor type, uniformly at random."""
    rng = rng or random
    return rng.choice(BACKGROUND_SETTINGS), rng.choice(INSTRUCTOR_TYPES)


def get_pose_image_prompt(
    pose_name: str,
    sanskrit_name: str,
    description: str,
    setting: str,
    instructor: str,
) -> str:
    return dedent(
        f"""\
        A professional, photorealistic photo of a {instructor} demonstrating the {pose_name} ({sanskrit_name}) with perfect form.

        Visual & Anatomical Details:
        {_single_line(description)}

        Setting: {setting}.
        Lighting: Soft, natural, and flattering.
        Style: High-resolution, 4k, cinematic, instructional photography."""
    )


def get_pose_video_prompt(pose_name: str, sanskrit_name: str, description: str) -> str:
    return dedent(
        f"""\
        Instructional yoga video: A fitness instructor demonstrating the {pose_name} ({sanskrit_name}) pose perfectly.
        Visual details: {_single_line(description)}.
        Background: Bright, neutral studio.
        Shot: Full body, stable angle, clear movement."""
    )
