from setuptools import setup

package_name = "voicecoach"

setup(
    name=package_name,
    version="0.1.0",
    description="Real-time pitch/prosody engine and deterministic coaching-hint policy",
    packages=["voicecoach_pitch", "voicecoach_pitch.detectors", "voicecoach_policy"],
    data_files=[
        ("share/" + package_name + "/config", ["config/coach.yaml"]),
    ],
    install_requires=[
        "numpy>=1.24",
        "pyyaml>=6.0",
    ],
    extras_require={
        "model": ["torch>=2.0"],
        "plot": ["matplotlib>=3.7"],
        "test": ["pytest>=7.4"],
    },
    python_requires=">=3.9",
    zip_safe=True,
)
