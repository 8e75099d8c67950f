"""
Catalog of reusable workflow step fragments.

Steps are keyed by language, framework and package manager. Action versions
come from the shared TemplateCache so every generator pins the same refs.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from ..core.conflict_resolver import FRAMEWORK_LANGUAGES, ResolvedDetection
from ..core.template_cache import TemplateCache
from ..models.workflow import Step, checkout_step
from ..utils.helpers import env_var_name, slugify


LANGUAGE_ALIASES = {"typescript": "javascript", "node": "javascript", "nodejs": "javascript",
                    "kotlin": "java", "c#": "csharp", "golang": "go"}

DEFAULT_VERSIONS: Dict[str, str] = {
    "javascript": "20",
    "python": "3.12",
    "go": "1.22",
    "java": "17",
    "rust": "stable",
    "ruby": "3.3",
    "php": "8.3",
    "csharp": "8.0.x",
}

MATRIX_VERSIONS: Dict[str, List[str]] = {
    "javascript": ["18", "20", "22"],
    "python": ["3.10", "3.11", "3.12"],
    "go": ["1.21", "1.22"],
    "java": ["11", "17", "21"],
    "rust": ["stable", "beta"],
    "ruby": ["3.2", "3.3"],
    "php": ["8.2", "8.3"],
    "csharp": ["6.0.x", "8.0.x"],
}

# `with:` key carrying the version for each setup action
VERSION_INPUTS: Dict[str, str] = {
    "javascript": "node-version",
    "python": "python-version",
    "go": "go-version",
    "java": "java-version",
    "rust": "toolchain",
    "ruby": "ruby-version",
    "php": "php-version",
    "csharp": "dotnet-version",
}

DEFAULT_PACKAGE_MANAGERS: Dict[str, str] = {
    "javascript": "npm",
    "python": "pip",
    "java": "maven",
    "rust": "cargo",
    "go": "go",
    "ruby": "bundler",
    "php": "composer",
    "csharp": "dotnet",
}

INSTALL_COMMANDS: Dict[str, str] = {
    "npm": "npm ci",
    "yarn": "yarn install --frozen-lockfile",
    "pnpm": "pnpm install --frozen-lockfile",
    "bun": "bun install --frozen-lockfile",
    "pip": "python -m pip install --upgrade pip\npip install -r requirements.txt",
    "poetry": "poetry install --no-interaction",
    "pipenv": "pip install pipenv\npipenv install --dev --deploy",
    "uv": "pip install uv\nuv sync",
    "maven": "mvn -B dependency:go-offline",
    "gradle": "./gradlew dependencies",
    "cargo": "cargo fetch",
    "go": "go mod download",
    "bundler": "bundle install",
    "composer": "composer install --no-interaction --prefer-dist",
    "dotnet": "dotnet restore",
}

LOCKFILES: Dict[str, str] = {
    "npm": "**/package-lock.json",
    "yarn": "**/yarn.lock",
    "pnpm": "**/pnpm-lock.yaml",
    "bun": "**/bun.lockb",
    "pip": "**/requirements*.txt",
    "poetry": "**/poetry.lock",
    "pipenv": "**/Pipfile.lock",
    "uv": "**/uv.lock",
    "maven": "**/pom.xml",
    "gradle": "**/*.gradle*",
    "cargo": "**/Cargo.lock",
    "go": "**/go.sum",
    "bundler": "**/Gemfile.lock",
    "composer": "**/composer.lock",
    "dotnet": "**/packages.lock.json",
}

CACHE_PATHS: Dict[str, str] = {
    "npm": "~/.npm",
    "yarn": "~/.cache/yarn",
    "pnpm": "~/.local/share/pnpm/store",
    "bun": "~/.bun/install/cache",
    "pip": "~/.cache/pip",
    "poetry": "~/.cache/pypoetry",
    "pipenv": "~/.cache/pipenv",
    "uv": "~/.cache/uv",
    "maven": "~/.m2/repository",
    "gradle": "~/.gradle/caches\n~/.gradle/wrapper",
    "cargo": "~/.cargo/registry\n~/.cargo/git\ntarget",
    "go": "~/go/pkg/mod\n~/.cache/go-build",
    "bundler": "vendor/bundle",
    "composer": "vendor",
    "dotnet": "~/.nuget/packages",
}

AUDIT_COMMANDS: Dict[str, str] = {
    "npm": "npm audit --audit-level=high",
    "yarn": "yarn audit --level high",
    "pnpm": "pnpm audit --audit-level high",
    "pip": "pip install pip-audit\npip-audit",
    "poetry": "pip install pip-audit\npip-audit",
    "pipenv": "pip install pip-audit\npip-audit",
    "uv": "pip install pip-audit\npip-audit",
    "maven": "mvn -B org.owasp:dependency-check-maven:check",
    "gradle": "./gradlew dependencyCheckAnalyze",
    "cargo": "cargo install cargo-audit\ncargo audit",
    "go": "go install golang.org/x/vuln/cmd/govulncheck@latest\ngovulncheck ./...",
    "bundler": "gem install bundler-audit\nbundle-audit check --update",
    "composer": "composer audit",
    "dotnet": "dotnet list package --vulnerable --include-transitive",
}

LINT_COMMANDS: Dict[str, str] = {
    "javascript": "{run} lint --if-present",
    "python": "pip install ruff\nruff check .",
    "go": "go vet ./...",
    "rust": "cargo clippy -- -D warnings",
    "java": "{build} -B verify -DskipTests",
    "ruby": "bundle exec rubocop",
    "php": "vendor/bin/phpcs",
    "csharp": "dotnet format --verify-no-changes",
}

FRAMEWORK_BUILD_COMMANDS: Dict[str, str] = {
    "django": "python manage.py check --deploy",
    "flask": "python -m compileall -q .",
    "fastapi": "python -m compileall -q .",
    "spring": "mvn -B package -DskipTests",
    "spring boot": "mvn -B package -DskipTests",
    "rails": "bundle exec rails assets:precompile",
    "laravel": "php artisan config:cache",
}

LANGUAGE_BUILD_COMMANDS: Dict[str, str] = {
    "python": "python -m compileall -q .",
    "go": "go build ./...",
    "rust": "cargo build --release",
    "java": "mvn -B package -DskipTests",
    "csharp": "dotnet build --no-restore --configuration Release",
}

TEST_COMMANDS: Dict[str, str] = {
    "jest": "{exec} jest --ci --coverage",
    "vitest": "{exec} vitest run --coverage",
    "mocha": "{exec} mocha",
    "jasmine": "{exec} jasmine",
    "karma": "{exec} karma start --single-run",
    "pytest": "pytest --junitxml=test-results.xml --cov=. --cov-report=xml",
    "unittest": "python -m unittest discover",
    "junit": "mvn -B test",
    "testng": "mvn -B test",
    "go test": "go test -race -coverprofile=coverage.out ./...",
    "testing": "go test -race -coverprofile=coverage.out ./...",
    "cargo test": "cargo test --all-features",
    "rspec": "bundle exec rspec",
    "minitest": "bundle exec rails test",
    "phpunit": "vendor/bin/phpunit",
    "xunit": "dotnet test --no-build",
    "nunit": "dotnet test --no-build",
}

E2E_FRAMEWORKS: Dict[str, str] = {
    "cypress": "{exec} cypress run",
    "playwright": "{exec} playwright install --with-deps\n{exec} playwright test",
    "selenium": "{exec} wdio run wdio.conf.js",
}

LANGUAGE_TEST_COMMANDS: Dict[str, str] = {
    "javascript": "{run} test --if-present",
    "python": "pip install pytest\npytest",
    "go": "go test ./...",
    "rust": "cargo test",
    "java": "mvn -B test",
    "ruby": "bundle exec rake test",
    "php": "vendor/bin/phpunit",
    "csharp": "dotnet test",
}

BUILD_OUTPUTS: Dict[str, str] = {
    "react": "build",
    "vue": "dist",
    "angular": "dist",
    "svelte": "build",
    "next.js": ".next",
    "nextjs": ".next",
    "nuxt": ".output",
    "spring": "target/*.jar",
    "spring boot": "target/*.jar",
}

LANGUAGE_OUTPUTS: Dict[str, str] = {
    "javascript": "dist",
    "python": "dist",
    "java": "target/*.jar",
    "rust": "target/release",
    "go": "bin",
    "csharp": "bin/Release",
}

MIGRATION_COMMANDS: Dict[str, str] = {
    "django": "python manage.py migrate --noinput",
    "flask": "flask db upgrade",
    "rails": "bundle exec rails db:migrate",
    "laravel": "php artisan migrate --force",
    "prisma": "npx prisma migrate deploy",
}

STATIC_FRAMEWORKS = ("react", "vue", "angular", "svelte", "gatsby", "hugo", "jekyll")
CONTAINER_TARGETS = ("docker", "kubernetes", "k8s", "ecs", "eks", "gke", "aks", "cloud-run", "fly")
KUBERNETES_TARGETS = ("kubernetes", "k8s", "eks", "gke", "aks")

# Env for `gh` steps; GH_REPO lets the CLI run without a checkout
GH_CLI_ENV: Dict[str, str] = {"GH_TOKEN": "${{ github.token }}", "GH_REPO": "${{ github.repository }}"}


def normalize_language(language: Optional[str]) -> Optional[str]:
    if not language:
        return None
    key = language.lower()
    return LANGUAGE_ALIASES.get(key, key)


@dataclass(frozen=True)
class Toolchain:
    """Language/framework/tooling choice a set of steps is generated for."""
    language: Optional[str] = None
    framework: Optional[str] = None
    framework_name: Optional[str] = None
    package_manager: Optional[str] = None
    testing_frameworks: Tuple[str, ...] = ()
    version: Optional[str] = None
    working_directory: Optional[str] = None

    @classmethod
    def from_resolved(cls, resolved: ResolvedDetection) -> "Toolchain":
        language = normalize_language(resolved.language)
        fw = resolved.primary_framework
        version = resolved.primary_language.version if resolved.primary_language else None
        return cls(
            language=language,
            framework=fw.key if fw else None,
            framework_name=fw.name if fw else None,
            package_manager=resolved.package_manager or DEFAULT_PACKAGE_MANAGERS.get(language or ""),
            testing_frameworks=tuple(resolved.testing_framework_names()),
            version=version,
        )

    @classmethod
    def for_path(cls, language: Optional[str], framework: Optional[str], working_directory: str,
                 fallback: "Toolchain") -> "Toolchain":
        """Toolchain for a sub-project, inheriting unspecified parts from `fallback`."""
        lang = normalize_language(language) or (
            normalize_language(FRAMEWORK_LANGUAGES.get(framework.lower())) if framework else None
        ) or fallback.language
        same_language = lang == fallback.language
        return cls(
            language=lang,
            framework=framework.lower() if framework else None,
            framework_name=framework,
            package_manager=fallback.package_manager if same_language else DEFAULT_PACKAGE_MANAGERS.get(lang or ""),
            testing_frameworks=fallback.testing_frameworks if same_language else (),
            version=fallback.version if same_language else None,
            working_directory=working_directory,
        )

    @property
    def is_generic(self) -> bool:
        return self.language is None

    @property
    def display_name(self) -> str:
        if self.framework_name:
            return self.framework_name
        return (self.language or "project").capitalize()

    @property
    def run_prefix(self) -> str:
        """Command prefix for package.json scripts."""
        return {"yarn": "yarn", "pnpm": "pnpm run", "bun": "bun run"}.get(self.package_manager or "", "npm run")

    @property
    def exec_prefix(self) -> str:
        return {"yarn": "yarn", "pnpm": "pnpm exec", "bun": "bunx"}.get(self.package_manager or "", "npx")

    @property
    def java_build(self) -> str:
        return "./gradlew" if self.package_manager == "gradle" else "mvn"

    def fill(self, template: str) -> str:
        return template.format(run=self.run_prefix, exec=self.exec_prefix, build=self.java_build)


class StepLibrary:
    """Builds steps for a toolchain, pinning actions through the template cache."""

    def __init__(self, cache: Optional[TemplateCache] = None):
        self.cache = cache or TemplateCache()

    def ref(self, action: str, toolchain: Optional[Toolchain] = None) -> str:
        if toolchain is None:
            return self.cache.ref(action)
        return self.cache.ref(action, toolchain.language, toolchain.framework)

    def _step(self, toolchain: Toolchain, **kwargs) -> Step:
        if toolchain.working_directory and "run" in kwargs:
            kwargs.setdefault("working_directory", toolchain.working_directory)
        return Step(**kwargs)

    # Setup

    def checkout(self, fetch_depth: Optional[int] = None) -> Step:
        return checkout_step(fetch_depth)

    def default_version(self, toolchain: Toolchain) -> str:
        return toolchain.version or DEFAULT_VERSIONS.get(toolchain.language or "", "latest")

    def matrix_versions(self, toolchain: Toolchain) -> List[str]:
        return list(MATRIX_VERSIONS.get(toolchain.language or "", []))

    def setup_steps(self, toolchain: Toolchain, version: Optional[str] = None) -> List[Step]:
        """Language setup steps; empty for languages with no setup action."""
        setup = self.cache.setup_action(toolchain.language)
        if setup is None:
            return []

        steps: List[Step] = []
        version = version or self.default_version(toolchain)
        language = toolchain.language

        if language == "javascript" and toolchain.package_manager == "pnpm":
            steps.append(Step(name="Set up pnpm", uses=self.ref("pnpm/action-setup", toolchain),
                              with_={"version": 9}))

        with_ = {VERSION_INPUTS[language]: version}
        if language == "java":
            with_["distribution"] = "temurin"
        if language == "ruby":
            with_["bundler-cache"] = True
        if language == "rust":
            with_["components"] = "clippy, rustfmt"
        steps.append(Step(name=f"Set up {self._language_label(language)}", uses=setup.ref, with_=with_))

        if toolchain.package_manager == "poetry":
            steps.append(Step(name="Install Poetry", uses=self.ref("snok/install-poetry", toolchain)))
        return steps

    def cache_step(self, toolchain: Toolchain) -> Optional[Step]:
        """Dependency cache keyed by the lockfile hash."""
        pm = toolchain.package_manager
        if not pm or pm not in LOCKFILES:
            return None
        prefix = f"{toolchain.working_directory}/" if toolchain.working_directory else ""
        lockfile = LOCKFILES[pm].replace("**/", f"{prefix}**/", 1) if prefix else LOCKFILES[pm]
        key_suffix = f"-{slugify(toolchain.working_directory)}" if toolchain.working_directory else ""
        return Step(
            name="Cache dependencies",
            uses=self.ref("actions/cache", toolchain),
            with_={
                "path": CACHE_PATHS[pm],
                "key": f"${{{{ runner.os }}}}-{pm}{key_suffix}-${{{{ hashFiles('{lockfile}') }}}}",
                "restore-keys": f"${{{{ runner.os }}}}-{pm}{key_suffix}-",
            },
        )

    # Commands

    def install_step(self, toolchain: Toolchain) -> Optional[Step]:
        command = INSTALL_COMMANDS.get(toolchain.package_manager or "")
        if command is None:
            return None
        return self._step(toolchain, name="Install dependencies", run=command)

    def build_command(self, toolchain: Toolchain) -> Optional[str]:
        if toolchain.framework in FRAMEWORK_BUILD_COMMANDS:
            return FRAMEWORK_BUILD_COMMANDS[toolchain.framework]
        if toolchain.language == "javascript":
            return f"{toolchain.run_prefix} build"
        if toolchain.language == "java" and toolchain.package_manager == "gradle":
            return "./gradlew build -x test"
        return LANGUAGE_BUILD_COMMANDS.get(toolchain.language or "")

    def build_step(self, toolchain: Toolchain, command: Optional[str] = None) -> Optional[Step]:
        command = command or self.build_command(toolchain)
        if command is None:
            return None
        env = {"NODE_ENV": "production"} if toolchain.language == "javascript" else {}
        return self._step(toolchain, name=f"Build {toolchain.display_name} application", run=command, env=env)

    def test_command(self, toolchain: Toolchain) -> Optional[str]:
        for name in toolchain.testing_frameworks:
            if name in TEST_COMMANDS:
                command = TEST_COMMANDS[name]
                if name == "junit" and toolchain.package_manager == "gradle":
                    command = "./gradlew test"
                return toolchain.fill(command)
        template = LANGUAGE_TEST_COMMANDS.get(toolchain.language or "")
        return toolchain.fill(template) if template else None

    def test_step(self, toolchain: Toolchain, command: Optional[str] = None) -> Optional[Step]:
        command = command or self.test_command(toolchain)
        if command is None:
            return None
        return self._step(toolchain, name="Run tests", run=command, env={"CI": "true"})

    def e2e_command(self, toolchain: Toolchain) -> Optional[str]:
        for name in toolchain.testing_frameworks:
            if name in E2E_FRAMEWORKS:
                return toolchain.fill(E2E_FRAMEWORKS[name])
        return None

    def lint_step(self, toolchain: Toolchain) -> Optional[Step]:
        template = LINT_COMMANDS.get(toolchain.language or "")
        if template is None:
            return None
        return self._step(toolchain, name="Run linter", run=toolchain.fill(template))

    def audit_step(self, toolchain: Toolchain) -> Step:
        command = AUDIT_COMMANDS.get(toolchain.package_manager or "")
        if command is None:
            return Step(name="Dependency audit", uses=self.ref("actions/dependency-review-action", toolchain),
                        if_="github.event_name == 'pull_request'")
        return self._step(toolchain, name="Dependency audit", run=command)

    def artifact_path(self, toolchain: Toolchain) -> str:
        path = BUILD_OUTPUTS.get(toolchain.framework or "") or LANGUAGE_OUTPUTS.get(toolchain.language or "", "dist")
        if toolchain.working_directory:
            return f"{toolchain.working_directory}/{path}"
        return path

    def upload_artifact_step(self, toolchain: Toolchain, name: str = "build-output",
                             path: Optional[str] = None, retention_days: int = 7) -> Step:
        return Step(
            name="Upload build artifacts",
            uses=self.ref("actions/upload-artifact", toolchain),
            with_={
                "name": name,
                "path": path or self.artifact_path(toolchain),
                "retention-days": retention_days,
                "if-no-files-found": "warn",
            },
        )

    def prepare_steps(self, toolchain: Toolchain, caching: bool = True,
                      version: Optional[str] = None) -> List[Step]:
        """checkout -> setup -> cache -> install."""
        steps = [self.checkout()]
        steps.extend(self.setup_steps(toolchain, version))
        if caching:
            cache = self.cache_step(toolchain)
            if cache:
                steps.append(cache)
        install = self.install_step(toolchain)
        if install:
            steps.append(install)
        return steps

    # Deployment

    def deploy_steps(self, toolchain: Toolchain, resolved: ResolvedDetection, environment: str,
                     production: bool = False) -> List[Step]:
        """
        Framework and target appropriate deployment steps.

        Container targets build and push an image; static frontends publish
        their build output; server frameworks run their migration command.
        """
        env_key = slugify(environment)
        steps: List[Step] = []
        framework = toolchain.framework or ""

        if resolved.has_target(*CONTAINER_TARGETS):
            steps.extend(self.container_steps(toolchain, env_key))
            steps.append(self._rollout_step(resolved, env_key))
        elif framework in ("next.js", "nextjs") or resolved.has_target("vercel"):
            with_ = {
                "vercel-token": "${{ secrets.VERCEL_TOKEN }}",
                "vercel-org-id": "${{ secrets.VERCEL_ORG_ID }}",
                "vercel-project-id": "${{ secrets.VERCEL_PROJECT_ID }}",
            }
            if production:
                with_["vercel-args"] = "--prod"
            steps.append(Step(name="Deploy to Vercel", id="deploy",
                              uses=self.ref("amondnet/vercel-action", toolchain), with_=with_))
        elif resolved.has_target("netlify"):
            steps.append(Step(
                name="Deploy to Netlify",
                id="deploy",
                uses=self.ref("nwtgck/actions-netlify", toolchain),
                with_={
                    "publish-dir": self.artifact_path(toolchain),
                    "production-deploy": production,
                    "deploy-message": f"Deploy {env_key} ${{{{ github.sha }}}}",
                },
                env={
                    "NETLIFY_AUTH_TOKEN": "${{ secrets.NETLIFY_AUTH_TOKEN }}",
                    "NETLIFY_SITE_ID": "${{ secrets.NETLIFY_SITE_ID }}",
                },
            ))
        elif resolved.has_target("heroku"):
            steps.append(Step(
                name="Deploy to Heroku",
                id="deploy",
                uses=self.ref("akhileshns/heroku-deploy", toolchain),
                with_={
                    "heroku_api_key": "${{ secrets.HEROKU_API_KEY }}",
                    "heroku_app_name": f"{slugify(resolved.project_name)}-{env_key}",
                    "heroku_email": "${{ secrets.HEROKU_EMAIL }}",
                },
            ))
        elif framework in STATIC_FRAMEWORKS or resolved.has_target("github-pages", "static"):
            steps.extend(self.static_site_steps(toolchain, resolved))
        else:
            steps.append(self._step(
                toolchain,
                name=f"Deploy {toolchain.display_name} to {environment}",
                id="deploy",
                run=(
                    "if [ -x ./scripts/deploy.sh ]; then\n"
                    f"  ./scripts/deploy.sh {env_key}\n"
                    "else\n"
                    f"  echo \"No deploy script found; add scripts/deploy.sh to deploy to {env_key}\"\n"
                    "fi"
                ),
                env={"DEPLOY_ENVIRONMENT": env_key},
            ))

        migration = MIGRATION_COMMANDS.get(framework)
        if migration:
            steps.append(self._step(toolchain, name="Run database migrations", run=migration,
                                    env={"DATABASE_URL": "${{ secrets.DATABASE_URL }}"}))
        return steps

    def container_steps(self, toolchain: Toolchain, tag_prefix: str) -> List[Step]:
        image = "ghcr.io/${{ github.repository }}"
        context = toolchain.working_directory or "."
        return [
            Step(name="Set up Docker Buildx", uses=self.ref("docker/setup-buildx-action", toolchain)),
            Step(
                name="Log in to container registry",
                uses=self.ref("docker/login-action", toolchain),
                with_={"registry": "ghcr.io", "username": "${{ github.actor }}",
                       "password": "${{ secrets.GITHUB_TOKEN }}"},
            ),
            Step(
                name="Build and push container image",
                id="image",
                uses=self.ref("docker/build-push-action", toolchain),
                with_={
                    "context": context,
                    "push": True,
                    "tags": f"{image}:{tag_prefix}-${{{{ github.sha }}}}\n{image}:{tag_prefix}-latest",
                    "cache-from": "type=gha",
                    "cache-to": "type=gha,mode=max",
                },
            ),
        ]

    def static_site_steps(self, toolchain: Toolchain, resolved: ResolvedDetection) -> List[Step]:
        path = self.artifact_path(toolchain)
        if resolved.has_target("aws", "s3"):
            return [self._step(
                toolchain,
                name="Deploy static site to S3",
                id="deploy",
                run=f"aws s3 sync {path} s3://${{{{ vars.S3_BUCKET }}}} --delete",
            )]
        return [
            Step(name="Configure GitHub Pages", uses=self.ref("actions/configure-pages", toolchain)),
            Step(name="Upload static site", uses=self.ref("actions/upload-pages-artifact", toolchain),
                 with_={"path": path}),
            Step(name="Deploy static site to GitHub Pages", id="deploy",
                 uses=self.ref("actions/deploy-pages", toolchain)),
        ]

    def _rollout_step(self, resolved: ResolvedDetection, env_key: str) -> Step:
        app = slugify(resolved.project_name)
        image = f"ghcr.io/${{{{ github.repository }}}}:{env_key}-${{{{ github.sha }}}}"
        if resolved.has_target(*KUBERNETES_TARGETS):
            run = (
                f"kubectl set image deployment/{app} {app}={image} --namespace {env_key}\n"
                f"kubectl rollout status deployment/{app} --namespace {env_key} --timeout=600s"
            )
        elif resolved.has_target("cloud-run"):
            run = f"gcloud run deploy {app}-{env_key} --image {image} --region ${{{{ vars.GCP_REGION }}}} --quiet"
        else:
            run = f"echo \"Image {image} published for {env_key}\""
        return Step(name="Roll out new image", id="deploy", run=run)

    def health_check_steps(self, environment: str, url_expression: Optional[str] = None,
                           path: str = "/health", retries: int = 3) -> List[Step]:
        env_key = slugify(environment)
        url = url_expression or f"${{{{ vars.DEPLOYMENT_URL || 'https://{env_key}.example.com' }}}}"
        return [
            Step(
                name="Health check",
                id="health",
                run=(
                    "sleep 30\n"
                    f"for attempt in $(seq 1 {retries}); do\n"
                    f"  if curl -fsS \"$HEALTH_URL{path}\"; then\n"
                    "    echo \"healthy=true\" >> \"$GITHUB_OUTPUT\"\n"
                    "    exit 0\n"
                    "  fi\n"
                    "  sleep 10\n"
                    "done\n"
                    "echo \"healthy=false\" >> \"$GITHUB_OUTPUT\"\n"
                    "exit 1"
                ),
                env={"HEALTH_URL": url},
            ),
        ]

    def smoke_test_step(self, toolchain: Toolchain, environment: str) -> Step:
        env_key = slugify(environment)
        return self._step(
            toolchain,
            name="Run smoke tests",
            run=(
                "if [ -f ./scripts/smoke-test.sh ]; then\n"
                f"  ./scripts/smoke-test.sh {env_key}\n"
                "else\n"
                f"  curl -fsS \"$BASE_URL\" > /dev/null\n"
                "fi"
            ),
            env={"BASE_URL": f"${{{{ vars.DEPLOYMENT_URL || 'https://{env_key}.example.com' }}}}"},
        )

    def secret_env(self, secrets: Sequence[str]) -> Dict[str, str]:
        return {env_var_name(s): f"${{{{ secrets.{env_var_name(s)} }}}}" for s in secrets}

    @staticmethod
    def _language_label(language: str) -> str:
        return {
            "javascript": "Node.js",
            "python": "Python",
            "go": "Go",
            "java": "Java",
            "rust": "Rust toolchain",
            "ruby": "Ruby",
            "php": "PHP",
            "csharp": ".NET",
        }.get(language, language.capitalize())
