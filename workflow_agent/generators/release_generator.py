"""
Release Generator - version calculation, changelog, packaging and publishing.

The release runs on demand or from the weekly schedule:
1. prepare-version derives the next semantic version from the latest release
2. changelog collects commits since the previous tag
3. build-and-test produces checksummed release artifacts
4. publish pushes the package to the registry of the detected package manager
5. create-release tags the commit and attaches the artifacts
6. post-release opens an announcement issue
"""

from typing import Dict, List, Optional, Tuple

from ..core.errors import DegenerateInputWarning, TemplateFallbackWarning
from ..core.renderer import render_template
from ..models.options import WorkflowType
from ..models.workflow import Job, Step, Workflow, dispatch_input
from .base_generator import GenerationContext, WorkflowGenerator
from .step_library import CONTAINER_TARGETS, GH_CLI_ENV, Toolchain

NEW_VERSION = "${{ needs.prepare-version.outputs.new-version }}"

# Shell expression printing the version the project currently declares
CURRENT_VERSION_COMMANDS: Dict[str, str] = {
    "javascript": "node -p \"require('./package.json').version\" 2>/dev/null",
    "python": "grep -m1 -E '^version *=' pyproject.toml 2>/dev/null | sed -E 's/.*\"(.*)\".*/\\1/'",
    "rust": "grep -m1 -E '^version *=' Cargo.toml 2>/dev/null | sed -E 's/.*\"(.*)\".*/\\1/'",
    "java": "mvn -q help:evaluate -Dexpression=project.version -DforceStdout 2>/dev/null",
}
TAG_VERSION_COMMAND = "git describe --tags --abbrev=0 2>/dev/null"

# Writes $VERSION into the manifest before building or publishing
SET_VERSION_COMMANDS: Dict[str, str] = {
    "npm": "npm version \"$VERSION\" --no-git-tag-version --allow-same-version",
    "yarn": "npm version \"$VERSION\" --no-git-tag-version --allow-same-version",
    "pnpm": "npm version \"$VERSION\" --no-git-tag-version --allow-same-version",
    "pip": 'sed -i -E "s/^version = \\"[^\\"]*\\"/version = \\"$VERSION\\"/" pyproject.toml',
    "poetry": "poetry version \"$VERSION\"",
    "maven": "mvn -B versions:set -DnewVersion=\"$VERSION\" -DgenerateBackupPoms=false",
    "cargo": 'sed -i -E "0,/^version = /s/^version = \\"[^\\"]*\\"/version = \\"$VERSION\\"/" Cargo.toml',
}

RELEASE_BUILD_COMMANDS: Dict[str, str] = {
    "python": "python -m pip install build\npython -m build",
    "rust": "cargo build --release --locked",
    "go": (
        "for target in linux/amd64 linux/arm64 darwin/arm64 windows/amd64; do\n"
        "  os=${target%/*}\n"
        "  arch=${target#*/}\n"
        "  ext=$([ \"$os\" = windows ] && echo .exe || echo)\n"
        "  GOOS=$os GOARCH=$arch go build -ldflags \"-X main.version=$VERSION\" "
        "-o \"bin/${GITHUB_REPOSITORY#*/}-$os-$arch$ext\" .\n"
        "done"
    ),
}

# (step name, command, env) per package manager
PUBLISH_COMMANDS: Dict[str, Tuple[str, str, Dict[str, str]]] = {
    "npm": ("Publish to npm", "npm publish --access public",
            {"NODE_AUTH_TOKEN": "${{ secrets.NPM_TOKEN }}"}),
    "yarn": ("Publish to npm", "npm publish --access public",
             {"NODE_AUTH_TOKEN": "${{ secrets.NPM_TOKEN }}"}),
    "pnpm": ("Publish to npm", "pnpm publish --access public --no-git-checks",
             {"NODE_AUTH_TOKEN": "${{ secrets.NPM_TOKEN }}"}),
    "pip": ("Publish to PyPI", "python -m pip install build twine\npython -m build\ntwine upload dist/*",
            {"TWINE_USERNAME": "__token__", "TWINE_PASSWORD": "${{ secrets.PYPI_TOKEN }}"}),
    "poetry": ("Publish to PyPI", "poetry publish --build",
               {"POETRY_PYPI_TOKEN_PYPI": "${{ secrets.PYPI_TOKEN }}"}),
    "maven": ("Publish to Maven Central", "mvn -B deploy -DskipTests",
              {"MAVEN_USERNAME": "${{ secrets.MAVEN_USERNAME }}",
               "MAVEN_PASSWORD": "${{ secrets.MAVEN_PASSWORD }}"}),
    "gradle": ("Publish to Maven Central", "./gradlew publish -Pversion=\"$VERSION\"",
               {"ORG_GRADLE_PROJECT_mavenUsername": "${{ secrets.MAVEN_USERNAME }}",
                "ORG_GRADLE_PROJECT_mavenPassword": "${{ secrets.MAVEN_PASSWORD }}"}),
    "cargo": ("Publish to crates.io", "cargo publish --allow-dirty",
              {"CARGO_REGISTRY_TOKEN": "${{ secrets.CARGO_REGISTRY_TOKEN }}"}),
    "bundler": ("Publish to RubyGems", "gem build *.gemspec\ngem push *.gem",
                {"GEM_HOST_API_KEY": "${{ secrets.RUBYGEMS_API_KEY }}"}),
    "dotnet": ("Publish to NuGet",
               "dotnet pack -c Release -p:Version=\"$VERSION\" -o out\n"
               "dotnet nuget push out/*.nupkg --api-key \"$NUGET_API_KEY\" "
               "--source https://api.nuget.org/v3/index.json",
               {"NUGET_API_KEY": "${{ secrets.NUGET_API_KEY }}"}),
}

# Go modules are served from the tag itself; publishing only warms the proxy
GO_PROXY_COMMAND = "GOPROXY=proxy.golang.org go list -m \"github.com/$GITHUB_REPOSITORY@v$VERSION\""

VERSION_SCRIPT = """\
current=$({{ current_version }} || true)
current=${current#v}
current=${current:-0.0.0}
echo "Current version: $current"
IFS='.' read -r major minor patch <<< "${current%%-*}"
major=${major:-0}
minor=${minor:-0}
patch=${patch:-0}
case "$RELEASE_TYPE" in
  major) major=$((major + 1)); minor=0; patch=0 ;;
  minor) minor=$((minor + 1)); patch=0 ;;
  *) patch=$((patch + 1)) ;;
esac
version="$major.$minor.$patch"
if [ "$RELEASE_TYPE" = "prerelease" ]; then
  version="$version-rc.$GITHUB_RUN_NUMBER"
fi
echo "New version: $version"
echo "new-version=$version" >> "$GITHUB_OUTPUT"
echo "previous-version=$current" >> "$GITHUB_OUTPUT"
"""

CHANGELOG_SCRIPT = """\
previous=$(git describe --tags --abbrev=0 2>/dev/null || true)
range=${previous:+$previous..HEAD}
{
  echo "changelog<<CHANGELOG_EOF"
  echo "## v$VERSION"
  git log --no-merges --pretty=format:'- %s (%h)' $range
  echo
  echo "CHANGELOG_EOF"
} >> "$GITHUB_OUTPUT"
"""

COLLECT_ARTIFACTS_SCRIPT = """\
mkdir -p release-artifacts
for dir in {{ paths | join(' ') }}; do
  if [ -d "$dir" ]; then
    find "$dir" -maxdepth 1 -type f -exec cp {} release-artifacts/ \\;
  fi
done
cd release-artifacts
if [ -n "$(ls -A)" ]; then
  sha256sum * > checksums.txt
fi
"""

CREATE_RELEASE_SCRIPT = """\
flags=""
[ "$DRAFT" = "true" ] && flags="$flags --draft"
[ "$PRERELEASE" = "true" ] && flags="$flags --prerelease"
assets=$(find release-assets -type f 2>/dev/null || true)
gh release create "v$VERSION" $assets --target "$GITHUB_SHA" --title "v$VERSION" --notes "$NOTES" $flags
"""

ANNOUNCE_SCRIPT = """\
const version = process.env.VERSION;
const { owner, repo } = context.repo;
await github.rest.issues.create({
  owner,
  repo,
  title: `Release v${version} is available`,
  body: `See https://github.com/${owner}/${repo}/releases/tag/v${version} for notes and assets.`,
  labels: ['release'],
});
"""


class ReleaseGenerator(WorkflowGenerator):
    """Generates release.yml."""

    workflow_type = WorkflowType.RELEASE
    filename = "release.yml"

    def __init__(self, **kwargs):
        super().__init__(name="ReleaseGenerator", **kwargs)

    def build(self, ctx: GenerationContext) -> Workflow:
        tc = ctx.toolchain
        if tc.is_generic:
            ctx.warn(DegenerateInputWarning("No languages detected - using generic release workflow"))

        workflow = Workflow(
            name="Release",
            description="Versioned release with changelog, artifacts and package publishing",
            triggers={
                "workflow_dispatch": {"inputs": {
                    "release-type": dispatch_input("Type of release", required=True, default="patch",
                                                   options=["patch", "minor", "major", "prerelease"]),
                    "prerelease": dispatch_input("Mark as prerelease", default=False, type_="boolean"),
                    "draft": dispatch_input("Create as draft release", default=False, type_="boolean"),
                }},
                "schedule": [{"cron": "0 10 * * 1"}],
            },
            permissions={"contents": "write", "packages": "write", "issues": "write"},
            concurrency={"group": "release", "cancel-in-progress": False},
        )

        prepare = workflow.add_job(self._prepare_job(tc))
        changelog = workflow.add_job(self._changelog_job(prepare))
        build = workflow.add_job(self._build_job(tc, prepare, ctx))

        release_needs = [prepare.id, changelog.id, build.id]
        publish = self._publish_job(tc, prepare, build, ctx)
        if publish is not None:
            workflow.add_job(publish)
            release_needs.append(publish.id)

        release = workflow.add_job(self._release_job(release_needs))
        workflow.add_job(self._announce_job(tc, prepare, release))

        ctx.optimize("Release version calculated from the latest declared version")
        ctx.optimize("Artifacts checksummed before they are attached to the release")
        return workflow

    def _prepare_job(self, tc: Toolchain) -> Job:
        job = self.job(
            "prepare-version",
            "Prepare version",
            if_=(f"github.event_name == 'workflow_dispatch' || "
                 f"github.ref == 'refs/heads/{self.settings.default_branch}'"),
            outputs={
                "new-version": "${{ steps.version.outputs.new-version }}",
                "previous-version": "${{ steps.version.outputs.previous-version }}",
            },
        )
        job.add_step(self.steps.checkout(fetch_depth=0))
        job.add_steps(self.steps.setup_steps(tc))
        current = CURRENT_VERSION_COMMANDS.get(tc.language or "", TAG_VERSION_COMMAND)
        if tc.language == "java" and tc.package_manager == "gradle":
            current = TAG_VERSION_COMMAND
        job.add_step(Step(
            name="Calculate version",
            id="version",
            run=render_template(VERSION_SCRIPT, {"current_version": current}),
            env={"RELEASE_TYPE": "${{ inputs.release-type || 'patch' }}"},
        ))
        return job

    def _changelog_job(self, prepare: Job) -> Job:
        job = self.job(
            "changelog",
            "Generate changelog",
            needs=[prepare.id],
            outputs={"changelog": "${{ steps.changelog.outputs.changelog }}"},
        )
        job.add_step(self.steps.checkout(fetch_depth=0))
        job.add_step(Step(name="Collect changes since the previous release", id="changelog",
                          run=CHANGELOG_SCRIPT, env={"VERSION": NEW_VERSION}))
        return job

    def _set_version_step(self, tc: Toolchain) -> Optional[Step]:
        command = SET_VERSION_COMMANDS.get(tc.package_manager or "")
        if command is None:
            return None
        return Step(name="Set release version", run=command, env={"VERSION": NEW_VERSION})

    def _build_job(self, tc: Toolchain, prepare: Job, ctx: GenerationContext) -> Job:
        job = self.job("build-and-test", "Build and test release", needs=[prepare.id],
                       env={"VERSION": NEW_VERSION})
        if tc.is_generic:
            job.add_step(self.steps.checkout())
        else:
            job.add_steps(self.steps.prepare_steps(tc, caching=ctx.options.caching_enabled))
            job.add_step(self._set_version_step(tc))
            job.add_step(self.steps.build_step(tc, RELEASE_BUILD_COMMANDS.get(tc.language or "")))
            job.add_step(self.steps.test_step(tc))
            audit = self.steps.audit_step(tc)
            if audit.run is not None:
                audit.continue_on_error = not ctx.options.enterprise
                job.add_step(audit)

        paths = ["dist", "build", "target/release", "bin", "out"]
        artifact = self.steps.artifact_path(tc)
        if artifact not in paths:
            paths.insert(0, artifact)
        job.add_step(Step(name="Collect release artifacts",
                          run=render_template(COLLECT_ARTIFACTS_SCRIPT, {"paths": paths})))
        job.add_step(self.steps.upload_artifact_step(tc, name="release-artifacts", path="release-artifacts/",
                                                     retention_days=90))
        return job

    def _publish_job(self, tc: Toolchain, prepare: Job, build: Job, ctx: GenerationContext) -> Optional[Job]:
        publish = PUBLISH_COMMANDS.get(tc.package_manager or "")
        container = ctx.resolved.has_target(*CONTAINER_TARGETS)
        if publish is None and not container:
            if not tc.is_generic and tc.language != "go":
                ctx.warn(TemplateFallbackWarning(
                    f"No package registry known for {tc.package_manager or tc.language} - "
                    "manual publishing may be required",
                    package_manager=tc.package_manager,
                ))
            return None

        job = self.job(
            "publish",
            "Publish packages",
            needs=[prepare.id, build.id],
            if_="inputs.draft != true",
            environment="release",
            env={"VERSION": NEW_VERSION},
        )
        if publish is not None:
            job.add_steps(self._registry_setup(tc))
            job.add_step(self._set_version_step(tc))
            name, command, env = publish
            job.add_step(Step(name=name, run=command, env=dict(env)))
            ctx.optimize(f"{name.replace('Publish to ', '')} publishing runs only after build and tests pass")
        else:
            job.add_step(self.steps.checkout())
        if container:
            job.add_steps(self.steps.container_steps(tc, "release"))
        return job

    def _registry_setup(self, tc: Toolchain) -> List[Step]:
        steps = [self.steps.checkout()]
        for step in self.steps.setup_steps(tc):
            if tc.language == "javascript" and step.action == "actions/setup-node":
                step.with_["registry-url"] = "https://registry.npmjs.org"
            steps.append(step)
        install = self.steps.install_step(tc)
        if install is not None and tc.language == "javascript":
            steps.append(install)
        return steps

    def _release_job(self, needs: List[str]) -> Job:
        job = self.job("create-release", "Create GitHub release", needs=needs,
                       if_="!failure() && !cancelled()")
        job.add_step(Step(
            name="Download release artifacts",
            uses=self.steps.ref("actions/download-artifact"),
            with_={"name": "release-artifacts", "path": "release-assets/"},
        ))
        env = dict(GH_CLI_ENV)
        env.update({
            "VERSION": NEW_VERSION,
            "NOTES": "${{ needs.changelog.outputs.changelog }}",
            "DRAFT": "${{ inputs.draft || false }}",
            "PRERELEASE": "${{ inputs.prerelease || inputs.release-type == 'prerelease' }}",
        })
        job.add_step(Step(name="Tag and publish release", run=CREATE_RELEASE_SCRIPT, env=env))
        return job

    def _announce_job(self, tc: Toolchain, prepare: Job, release: Job) -> Job:
        job = self.job("post-release", "Announce release", needs=[prepare.id, release.id],
                       if_="needs.create-release.result == 'success'")
        if tc.language == "go":
            job.add_step(Step(name="Warm the Go module proxy", run=GO_PROXY_COMMAND,
                              env={"VERSION": NEW_VERSION}))
        job.add_step(Step(
            name="Open release announcement",
            uses=self.steps.ref("actions/github-script"),
            with_={"script": ANNOUNCE_SCRIPT},
            env={"VERSION": NEW_VERSION},
        ))
        return job
