from setuptools import setup

setup(
    name='payouts-api',
    version='1.0',
    description='Payouts API with obfuscated record IDs and cursor pagination.',
    python_requires='>=3.9',
    py_modules=[
        'app',
        'config',
        'core_logic',
        'db_manager',
        'encoding',
        'limiter',
        'models',
        'obfuscation',
        'pagination',
        'router',
    ],
    install_requires=[
        'fastapi',
        'pydantic>=2',
        'pydantic-settings',
        'hashids',
        'slowapi',
        'uvicorn',
    ],
    extras_require={
        'test': [
            'pytest',
            'httpx',
        ],
    },
)
