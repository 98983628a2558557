"""Tests for README post-processing: formatting fixes, section injection, de-duplication."""

from clio.services.postprocessor import (
    ContentPostProcessor,
    code_mask,
    fix_formatting,
    remove_duplicate_sections,
)
from tests.conftest import make_analysis


def _process(text, analysis=None):
    return ContentPostProcessor().process(text, analysis)


class TestFixFormatting:

    def test_deep_headings_clamped_to_level_three(self):
        assert fix_formatting("#### Deep\n###### Deeper") == "### Deep\n### Deeper"

    def test_list_markers_unified(self):
        assert fix_formatting("* one\n+ two\n  * nested") == "- one\n- two\n  - nested"

    def test_relative_links_become_anchors(self):
        out = fix_formatting("See [the guide](Getting Started).")
        assert out == "See [the guide](#getting-started)."

    def test_absolute_and_anchor_links_untouched(self):
        text = "[site](https://example.com) [top](#top) [root](/docs) ![logo](logo.png)"
        assert fix_formatting(text) == text

    def test_fenced_block_trimmed_and_left_alone(self):
        text = "```bash\n\n\n* not a list\n#### not a heading\n\n```"
        assert fix_formatting(text) == "```bash\n* not a list\n#### not a heading\n```"

    def test_unclosed_fence_left_untouched(self):
        text = "intro\n```\n\n* item\n#### deep"
        assert fix_formatting(text) == text


class TestCodeMask:

    def test_fence_lines_and_body_are_code(self):
        lines = ["text", "```", "code", "```", "after"]
        assert code_mask(lines) == [False, True, True, True, False]

    def test_tilde_fence_needs_matching_close(self):
        lines = ["~~~", "```", "still code", "~~~", "prose"]
        assert code_mask(lines) == [True, True, True, True, False]


class TestSectionInjection:

    def test_cargo_project_gets_installation_before_first_heading(self):
        analysis = make_analysis(name="crab", build_tool="Cargo")
        out = _process("# Crab\n\nA tool.\n\n## Usage\n\nRun it.\n", analysis)

        assert out == (
            "## Installation\n\n```bash\ncargo build\ncargo run\n```\n\n"
            "# Crab\n\nA tool.\n\n## Usage\n\nRun it.\n"
        )

    def test_preamble_stays_above_injected_sections(self):
        out = _process("Intro text.\n\n## Usage\n", make_analysis(build_tool="Cargo"))
        assert out.startswith("Intro text.\n\n## Installation\n")
        assert out.index("cargo run") < out.index("## Usage")

    def test_existing_installation_not_duplicated(self):
        analysis = make_analysis(build_tool="npm")
        out = _process("# P\n\n## Installation\n\nnpm ci\n", analysis)
        assert out.count("## Installation") == 1
        assert "npm install" not in out

    def test_longer_installation_heading_counts_as_present(self):
        text = "# Title\n\n## Installation Guide\n\nRun make.\n\n## Usage\n"
        out = _process(text, make_analysis(build_tool="Cargo"))
        assert out == text
        assert "cargo build" not in out

    def test_longer_docker_and_development_headings_count_as_present(self):
        text = "# T\n\n## Development Setup\n\nx\n\n## Docker Compose\n\ny\n"
        analysis = make_analysis(has_tests=True, test_framework="pytest", has_docker=True)
        assert _process(text, analysis) == text

    def test_unknown_build_tool_gets_no_installation(self):
        out = _process("# P\n\n## Usage\n", make_analysis(build_tool=None))
        assert "## Installation" not in out

    def test_development_section_lists_test_command_and_dev_scripts(self):
        from clio.services.analyzer import PackageInfo

        analysis = make_analysis(
            has_tests=True,
            test_framework="Jest",
            package_info=PackageInfo(scripts={"dev": "vite", "build": "vite build", "start": "node ."}),
        )
        out = _process("# P\n\n## Usage\n", analysis)
        assert "## Development" in out
        assert "npm test" in out
        assert "- `dev`: vite" in out
        assert "- `start`: node ." in out
        assert "`build`" not in out

    def test_docker_section_uses_slugged_image_name(self):
        out = _process("# My App\n", make_analysis(name="My App", has_docker=True))
        assert "## Docker" in out
        assert "docker build -t my-app ." in out

    def test_sections_appended_when_document_has_no_headings(self):
        out = _process("Body text.", make_analysis(build_tool="pip"))
        assert out == (
            "Body text.\n\n## Installation\n\n"
            "```bash\npip install -r requirements.txt\n```\n"
        )

    def test_title_only_document_gets_sections_before_title(self):
        out = _process("# Only Title\n\nBody text.", make_analysis(build_tool="pip"))
        assert out == (
            "## Installation\n\n```bash\npip install -r requirements.txt\n```\n\n"
            "# Only Title\n\nBody text.\n"
        )

    def test_injected_sections_keep_installation_development_docker_order(self):
        analysis = make_analysis(build_tool="Cargo", has_tests=True, test_framework="pytest", has_docker=True)
        out = _process("# P\n", analysis)
        assert out.index("## Installation") < out.index("## Development") < out.index("## Docker") < out.index("# P\n")

    def test_no_analysis_means_no_injection(self):
        assert _process("# P\n\n## Usage\n") == "# P\n\n## Usage\n"

    def test_heading_inside_code_does_not_count_as_present(self):
        text = "# P\n\n```markdown\n## Installation\n```\n\n## Usage\n"
        out = _process(text, make_analysis(build_tool="Cargo"))
        assert "cargo build" in out


class TestDuplicateSections:

    def test_repeated_usage_sections_collapse_to_first(self):
        text = "# T\n\n## Usage\nfirst\n\n## Usage\nsecond\n\n## Usage\nthird\n\n## Usage\nfourth\n"
        out = _process(text)
        assert out.count("## Usage") == 1
        assert "first" in out
        assert "second" not in out
        assert "fourth" not in out

    def test_preamble_kept(self):
        out = remove_duplicate_sections("Intro line\n## A\nx\n## A\ny")
        assert out == "Intro line\n## A\nx"

    def test_headings_in_code_blocks_ignored(self):
        text = "# T\n\n## Usage\n\n```markdown\n## Usage\n```\n"
        assert _process(text) == text


class TestProcess:

    def test_crlf_normalized(self):
        assert _process("# T\r\n\r\nBody\r\n") == "# T\n\nBody\n"

    def test_single_trailing_newline(self):
        assert _process("# T\n\n\n\n") == "# T\n"

    def test_empty_input(self):
        assert _process("") == ""

    def test_title_preserved(self):
        out = _process("# Widget\n\n## Usage\n", make_analysis(build_tool="npm", has_docker=True))
        assert out.count("# Widget\n") == 1
        assert out.endswith("# Widget\n\n## Usage\n")

    def test_idempotent(self):
        analysis = make_analysis(build_tool="Cargo", has_tests=True, test_framework="pytest", has_docker=True)
        raw = "# Crab\n\n* a\n\n#### Deep\n\n## Usage\nx\n\n## Usage\ny\n"
        once = _process(raw, analysis)
        assert _process(once, analysis) == once
