#!/usr/bin/env python3
"""Configuration validation script."""

import argparse
import sys
from pathlib import Path

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from tradebot_app.config.loader import ConfigLoader
from tradebot_app.config.settings import YamlSettingsSource
from tradebot_app.config.validation import ConfigValidator
from tradebot_app.errors import ConfigurationError


def main():
    """Main validation function."""
    parser = argparse.ArgumentParser(description="Validate TradeBot configuration")
    parser.add_argument("--config-dir", type=Path, default=project_root / "config",
                        help="Directory holding tradebot.yaml")
    parser.add_argument("--settings", type=Path, default=None,
                        help="Trading settings YAML (defaults to the configured settings_file)")
    args = parser.parse_args()

    print(f"🔍 Validating TradeBot configuration in {args.config_dir}...")
    all_valid = True

    try:
        config = ConfigLoader.create(args.config_dir).load()
    except ConfigurationError as e:
        print(f"❌ Cannot load configuration: {e}")
        sys.exit(1)

    errors = ConfigValidator.validate_config(config)
    if errors:
        print(f"❌ Found {len(errors)} validation errors:")
        for error in errors:
            print(f"  • {error.field}: {error.message} (value: {error.value})")
        all_valid = False
    else:
        print("✅ Runtime configuration is valid")

    if not config.broker.api_key_id or not config.broker.api_secret_key:
        print("⚠️  Broker credentials are not set (APCA_API_KEY_ID / APCA_API_SECRET_KEY)")

    settings_path = args.settings or args.config_dir / config.settings.settings_file
    print(f"\n📋 Validating trading settings in {settings_path}...")
    try:
        settings = YamlSettingsSource(settings_path).load()
        print(f"✅ Trading settings are valid (budget={settings.fixed_budget}, "
              f"take_profit={settings.take_profit_percent}%)")
    except ConfigurationError as e:
        print(f"❌ {e}")
        for detail in e.context.get("errors", []):
            print(f"  • {detail}")
        all_valid = False

    if all_valid:
        print("\n🎉 All configuration validation passed!")
        sys.exit(0)
    else:
        print("\n❌ Configuration validation failed!")
        sys.exit(1)


if __name__ == "__main__":
    main()
