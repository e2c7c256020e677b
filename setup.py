"""
Packaging for linestream. Tests live beside the modules they test as *_test.py and run with
`python -m pytest src` after `pip install -e .[test]`.
"""

from setuptools import setup

setup(
    name='linestream',
    version='0.0.1',
    description='Resilient line-oriented stream reading that reconnects until canceled.',
    url='',
    author='',
    author_email='',
    license='LGPL',
    package_dir={'': 'src'},
    packages=['linestream', 'linestream.conduit', 'linestream.config', 'linestream.connector',
              'linestream.protocol', 'linestream.support'],
    package_data={'linestream.config': ['*.cfg']},
    python_requires='>=3.8',
    install_requires=[
        'configobj>=5.0.6',
    ],
    extras_require={
        'test': [
            'pytest',
            'PyHamcrest>=2.0',
            'timeout-decorator',
        ],
    },
    entry_points={
        'console_scripts': ['linestream=linestream.cli:main'],
    },
    zip_safe=False,
)
