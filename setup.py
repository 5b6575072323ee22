from setuptools import setup, find_packages

setup(
    name='sound_presence_detection',
    version='1.0',
    description='Debounced presence detection for sound classification streams',
    license='new BSD',
    packages=find_packages(exclude=['tests']),
    python_requires='>=3.9',
    install_requires=[
        'numpy',
        'librosa',
        'requests',
        'sounddevice',
        'soundfile',
        'fastapi',
        'uvicorn',
        'python-multipart',
    ],
    extras_require={
        'yamnet': ['tensorflow', 'tensorflow-hub'],
        'test': ['pytest', 'httpx'],
    },
    entry_points={
        'console_scripts': [
            'sound-presence-monitor=sound_presence_detection.monitor.cli:main',
            'sound-presence-api=sound_presence_detection.monitor.api:main',
        ],
    },
    include_package_data=True,
    zip_safe=False
)
