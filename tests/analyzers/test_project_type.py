"""Tests for project type and framework detection."""

from __future__ import annotations

from pipegen.analyzers.project_type import ProjectTypeAnalyzer
from pipegen.models import Confidence


def test_detects_aspnet_core_project(repo_builder) -> None:
    repo_builder.write(
        {
            "Api.sln": "Microsoft Visual Studio Solution File\n",
            "Api.csproj": """
            <Project Sdk="Microsoft.NET.Sdk.Web">
              <PropertyGroup>
                <TargetFramework>net8.0</TargetFramework>
              </PropertyGroup>
              <ItemGroup>
                <PackageReference Include="Microsoft.EntityFrameworkCore" Version="8.0.0" />
              </ItemGroup>
            </Project>
            """,
            "Program.cs": "var app = WebApplication.Create();\n",
        }
    )

    signal = ProjectTypeAnalyzer().analyze(repo_builder.scan(), repo_builder.provider())

    assert signal is not None
    assert signal.source == "project_type"
    assert signal.detected_type == "dotnet"
    assert signal.confidence is Confidence.HIGH
    assert set(signal.marker_files) == {"Api.csproj", "Api.sln"}
    assert signal.framework.name == "ASP.NET Core"
    assert signal.framework.version == "8.0"
    assert "Entity Framework Core" in signal.framework.features


def test_detects_node_project_with_engine_version(repo_builder) -> None:
    repo_builder.write(
        {
            "package.json": """
            {"name": "web", "type": "module", "engines": {"node": ">=18.0.0"},
             "dependencies": {"express": "^4.18.2"}}
            """,
            "package-lock.json": "{}\n",
            "src/index.js": "console.log('hi');\n",
            "src/routes.js": "export default [];\n",
        }
    )

    signal = ProjectTypeAnalyzer().analyze(repo_builder.scan(), repo_builder.provider())

    assert signal.detected_type == "nodejs"
    assert signal.confidence is Confidence.HIGH
    assert signal.framework.name == "Express"
    assert signal.framework.version == "18"
    assert signal.framework.configuration == {"NODE_MODULE_TYPE": "module"}


def test_detects_python_framework_and_version(repo_builder) -> None:
    repo_builder.write(
        {
            "pyproject.toml": """
            [project]
            name = "svc"
            requires-python = ">=3.11"
            dependencies = ["fastapi>=0.110", "uvicorn"]
            """,
            "app/main.py": "app = None\n",
            "tests/test_main.py": "def test_ok():\n    assert True\n",
        }
    )

    signal = ProjectTypeAnalyzer().analyze(repo_builder.scan(), repo_builder.provider())

    assert signal.detected_type == "python"
    assert signal.confidence is Confidence.MEDIUM
    assert signal.framework.name == "FastAPI"
    assert signal.framework.version == "3.11"


def test_close_scores_are_low_confidence(repo_builder) -> None:
    repo_builder.write(
        {
            "package.json": "{}\n",
            "requirements.txt": "flask\n",
            "app.py": "print('hi')\n",
            "web.js": "console.log('hi');\n",
        }
    )

    manifest = repo_builder.scan()
    scores = ProjectTypeAnalyzer.score(manifest)
    signal = ProjectTypeAnalyzer().analyze(manifest, repo_builder.provider())

    assert scores["nodejs"] == 15
    assert scores["python"] == 13
    assert signal.detected_type == "nodejs"
    assert signal.confidence is Confidence.LOW


def test_returns_none_without_recognisable_files(repo_builder) -> None:
    repo_builder.write({"README.md": "# Hello\n"})

    assert ProjectTypeAnalyzer().analyze(repo_builder.scan(), repo_builder.provider()) is None
