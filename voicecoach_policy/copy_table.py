COPY = {
    # Pre
    "setup": "Headphones on, and switch off system mic 'enhancements' for a clean signal.",
    "goal-warmup": "Goal: easy airflow and a steady tone.",
    "goal-glide": "Goal: one smooth, continuous line.",
    "goal-phrase": "Goal: a gentle upward lilt on the last word.",

    # Realtime (safety + technique)
    "tooLoud": "Take a breath and make it a little lighter?",
    "jitter": "Slow the glide. Imagine drawing one line.",
    "target": "Try a slower, smaller sweep and stay inside the band.",
    "confidence": "Let the tone settle: start gently, keep it steady.",

    # Post-phrase
    "praise": "Lovely contour match! One more for consistency.",
    "nudge": "You've got the shape. Add a touch more lift at the end.",
    "retry": "Good effort. Try again with a gentler start, then a small rise.",
    "rise": "On the last word, let it float up just a little.",

    # Environment
    "isolation-dropped": "Performance mode paused: fallback detector active.",
    "device-changed": "Audio device changed. Check your microphone.",
    "enhancements-on": "Mic enhancements detected. Disable them for a clean signal.",
    "audio-suspended": "Audio is suspended. Click to resume.",
}
