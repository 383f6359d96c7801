"""
Configurable mock tweet stream.
Templates can be loaded from a JSON file without code changes.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# Default templates, used when no config file is present
DEFAULT_MOCK_TWEETS: List[Dict[str, str]] = [
    {"user_name": "TechGuru", "content": "Breaking: New AI breakthrough in #MachineLearning and #DeepLearning #Tech"},
    {"user_name": "DataScientist", "content": "Loving the new #BigData tools for #Analytics and #DataProcessing"},
    {"user_name": "CloudExpert", "content": "Just deployed a massive #Kubernetes cluster with #Docker containers #DevOps"},
    {"user_name": "AIResearcher", "content": "Working on #NLP models for better #TextAnalysis and #SentimentAnalysis"},
    {"user_name": "WebDev", "content": "Building responsive UIs with #React #JavaScript and #TypeScript"},
    {"user_name": "MobileGuru", "content": "Flutter vs React Native debate continues #Flutter #ReactNative #MobileDev"},
    {"user_name": "CyberSecPro", "content": "Important security updates for #CyberSecurity and #DataProtection #InfoSec"},
    {"user_name": "StartupFounder", "content": "Scaling our #Startup with #Microservices architecture #Innovation"},
]


def load_json_file(file_path: str) -> Optional[Any]:
    """Load a JSON file. Returns None if the file doesn't exist or is invalid."""
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (FileNotFoundError, json.JSONDecodeError, IOError):
        return None


def get_config_dir() -> Path:
    """Get the configuration directory path (``config/`` next to the package)."""
    return Path(__file__).parent.parent / "config"


def load_mock_tweets(config_file: Optional[Path] = None) -> List[Dict[str, str]]:
    """Load mock tweet templates from config file or use defaults."""
    path = config_file or get_config_dir() / "mock_tweets.json"
    config = load_json_file(str(path))
    if isinstance(config, list):
        validated = []
        for i, entry in enumerate(config):
            if (isinstance(entry, dict)
                    and isinstance(entry.get("user_name"), str) and entry["user_name"].strip()
                    and isinstance(entry.get("content"), str) and entry["content"].strip()):
                validated.append({"user_name": entry["user_name"], "content": entry["content"]})
            else:
                logger.warning("Invalid mock tweet template at index %d in %s, skipping", i, path)
        if validated:
            return validated
    return DEFAULT_MOCK_TWEETS
